"""Requirement agents, pipeline orchestration and the goal-driven job runner."""
