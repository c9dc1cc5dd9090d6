"""Deterministic post-processing: accuracy scoring and duplicate detection."""
