"""Requirement agent engine.

AI execution with provider failover, multi-agent requirement pipelines,
accuracy scoring and duplicate detection.
"""

__version__ = "0.1.0"
