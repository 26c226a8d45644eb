"""Anomaly recording, resolution and statistics."""

from adaptive_auth.anomaly.recorder import AnomalyRecorder, classify_anomaly, describe_anomaly
from adaptive_auth.anomaly.statistics import AnomalyStatistics, compute_statistics

__all__ = [
    "AnomalyRecorder",
    "classify_anomaly",
    "describe_anomaly",
    "AnomalyStatistics",
    "compute_statistics",
]
