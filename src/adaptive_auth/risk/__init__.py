"""Login risk analysis."""

from adaptive_auth.risk.analyzer import LoginRiskAnalyzer, ScoreCard, classify_severity

__all__ = ["LoginRiskAnalyzer", "ScoreCard", "classify_severity"]
