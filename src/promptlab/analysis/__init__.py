"""Post-evaluation analysis."""

from .failure_analyzer import FailureAnalyzer

__all__ = ["FailureAnalyzer"]
