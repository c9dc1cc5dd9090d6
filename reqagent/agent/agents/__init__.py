"""Concrete agents, one module per AgentKind."""
