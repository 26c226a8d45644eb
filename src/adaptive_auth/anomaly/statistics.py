"""Anomaly statistics over a detection window."""

from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from adaptive_auth.common.constants import DataConstants
from adaptive_auth.data.schemas import AnomalyRecord


class TopRiskyUser(BaseModel):
    user_id: Optional[str]
    anomaly_count: int
    average_risk_score: float
    last_anomaly_at: datetime


class AnomalyTrend(BaseModel):
    day: date
    total_count: int
    high_severity_count: int
    average_risk_score: float
    type_breakdown: Dict[str, int] = Field(default_factory=dict)


class AnomalyStatistics(BaseModel):
    from_date: datetime
    to_date: datetime
    total_anomalies: int = 0
    resolved_anomalies: int = 0
    pending_anomalies: int = 0
    high_severity_anomalies: int = 0
    critical_severity_anomalies: int = 0
    average_risk_score: float = 0.0
    anomalies_by_type: Dict[str, int] = Field(default_factory=dict)
    anomalies_by_day: Dict[str, int] = Field(default_factory=dict)
    anomalies_by_severity: Dict[int, int] = Field(default_factory=dict)
    top_risky_users: List[TopRiskyUser] = Field(default_factory=list)
    daily_trends: List[AnomalyTrend] = Field(default_factory=list)


def _mean(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_statistics(
    records: List[AnomalyRecord],
    from_date: datetime,
    to_date: datetime,
    top_users: int = DataConstants.TOP_RISKY_USERS,
) -> AnomalyStatistics:
    """Aggregate anomaly records detected in [from_date, to_date].

    "High" counts severity 4 and above, "critical" counts severity 5.
    Top risky users are ordered by average risk score, descending.
    """
    by_user: Dict[Optional[str], List[AnomalyRecord]] = defaultdict(list)
    by_day: Dict[date, List[AnomalyRecord]] = defaultdict(list)
    for record in records:
        by_user[record.user_id].append(record)
        by_day[record.detected_at.date()].append(record)

    risky_users = [
        TopRiskyUser(
            user_id=user_id,
            anomaly_count=len(group),
            average_risk_score=_mean([r.risk_score for r in group]),
            last_anomaly_at=max(r.detected_at for r in group),
        )
        for user_id, group in by_user.items()
    ]
    risky_users.sort(key=lambda u: u.average_risk_score, reverse=True)

    trends = [
        AnomalyTrend(
            day=day,
            total_count=len(group),
            high_severity_count=sum(1 for r in group if r.severity >= 4),
            average_risk_score=_mean([r.risk_score for r in group]),
            type_breakdown=dict(Counter(r.anomaly_type.value for r in group)),
        )
        for day, group in sorted(by_day.items())
    ]

    return AnomalyStatistics(
        from_date=from_date,
        to_date=to_date,
        total_anomalies=len(records),
        resolved_anomalies=sum(1 for r in records if r.is_resolved),
        pending_anomalies=sum(1 for r in records if not r.is_resolved),
        high_severity_anomalies=sum(1 for r in records if r.severity >= 4),
        critical_severity_anomalies=sum(1 for r in records if r.severity == 5),
        average_risk_score=_mean([r.risk_score for r in records]),
        anomalies_by_type=dict(Counter(r.anomaly_type.value for r in records)),
        anomalies_by_day={day.isoformat(): len(group) for day, group in sorted(by_day.items())},
        anomalies_by_severity=dict(Counter(r.severity for r in records)),
        top_risky_users=risky_users[:top_users],
        daily_trends=trends,
    )
