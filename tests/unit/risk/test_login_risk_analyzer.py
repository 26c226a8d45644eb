"""Tests for the Login Risk Analyzer."""

from datetime import timedelta

import pytest

from adaptive_auth.anomaly.recorder import AnomalyRecorder
from adaptive_auth.common.exceptions import PersistenceError
from adaptive_auth.core.types import AnomalyType, ResponseAction, RiskFactor, Severity
from adaptive_auth.risk.analyzer import (
    DEFAULT_RECOMMENDATION,
    MONITORING_RECOMMENDATION,
    LoginRiskAnalyzer,
    ScoreCard,
    classify_severity,
)


@pytest.fixture
def analyzer(uow, alerts, rules, clock):
    recorder = AnomalyRecorder(uow, alerts, rules, clock)
    return LoginRiskAnalyzer(uow, recorder, rules, clock)


class TestFirstLogin:
    """A user without a baseline."""

    def test_first_login_scores_new_user_only(self, analyzer, make_attempt):
        result = analyzer.analyze(make_attempt())

        assert result.risk_score == 20
        assert result.reasons == [RiskFactor.NEW_USER.value]
        assert result.recommended_action == ResponseAction.ALLOW
        assert result.is_anomalous is False
        assert result.severity == Severity.MINIMAL

    def test_first_login_creates_baseline(self, analyzer, make_attempt, uow, user, clock):
        analyzer.analyze(make_attempt())

        baseline = uow.baselines.get(user.user_id)
        assert baseline is not None
        assert baseline.recent_locations == ["BR,SP,Sao Paulo"]
        assert baseline.known_devices == ["fp_known"]
        assert baseline.typical_hours == [clock().hour]
        assert baseline.total_successful_logins == 1
        assert baseline.first_login_at == clock()

    def test_attempt_is_persisted_with_score(self, analyzer, make_attempt, uow):
        result = analyzer.analyze(make_attempt())

        attempt = uow.login_attempts.get(result.login_attempt_id)
        assert attempt is not None
        assert attempt.risk_score == 20
        assert attempt.response_action == ResponseAction.ALLOW
        assert attempt.anomaly_reasons == [RiskFactor.NEW_USER.value]


class TestBaselineChecks:
    """Checks that compare the attempt to an existing baseline."""

    def test_familiar_context_scores_zero(self, analyzer, make_attempt, seed_baseline):
        seed_baseline()

        result = analyzer.analyze(make_attempt())

        assert result.risk_score == 0
        assert result.reasons == []
        assert result.recommended_action == ResponseAction.ALLOW
        assert result.recommendations == [DEFAULT_RECOMMENDATION]

    def test_new_country_adds_location_and_country(self, analyzer, make_attempt, seed_baseline, alerts):
        seed_baseline()

        result = analyzer.analyze(make_attempt(country="US", region="CA", city="San Francisco"))

        assert RiskFactor.UNUSUAL_LOCATION.value in result.reasons
        assert RiskFactor.NEW_COUNTRY.value in result.reasons
        assert result.risk_score >= 55
        assert result.risk_score == 80
        assert result.recommended_action == ResponseAction.STEP_UP
        assert result.is_anomalous is True
        assert result.severity == Severity.HIGH

    def test_new_city_in_known_country(self, analyzer, make_attempt, seed_baseline):
        seed_baseline()

        result = analyzer.analyze(make_attempt(region="RJ", city="Rio de Janeiro"))

        assert result.reasons == [RiskFactor.UNUSUAL_LOCATION.value]
        assert result.risk_score == 50
        assert result.recommended_action == ResponseAction.CHALLENGE

    def test_missing_country_skips_location_check(self, analyzer, make_attempt, seed_baseline):
        seed_baseline()

        result = analyzer.analyze(make_attempt(country=None, region=None, city=None))

        assert RiskFactor.UNUSUAL_LOCATION.value not in result.reasons

    def test_late_night_hour(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        clock.set(hour=3)

        result = analyzer.analyze(make_attempt())

        assert result.reasons == [RiskFactor.UNUSUAL_TIME_LATE_NIGHT.value]
        assert result.risk_score == 50
        assert result.is_anomalous is True

    def test_unusual_daytime_hour(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        clock.set(hour=20)

        result = analyzer.analyze(make_attempt())

        assert result.reasons == [RiskFactor.UNUSUAL_TIME.value]
        assert result.risk_score == 30
        assert result.is_anomalous is False

    def test_empty_typical_hours_skips_time_check(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline(typical_hours=[])
        clock.set(hour=3)

        result = analyzer.analyze(make_attempt())

        assert result.reasons == []

    def test_new_device(self, analyzer, make_attempt, seed_baseline):
        seed_baseline()

        result = analyzer.analyze(make_attempt(device_fingerprint="fp_unknown"))

        assert result.reasons == [RiskFactor.NEW_DEVICE.value]
        assert result.risk_score == 70
        assert result.recommended_action == ResponseAction.STEP_UP

    def test_per_user_thresholds_are_used(self, analyzer, make_attempt, seed_baseline):
        seed_baseline(device_risk_threshold=10)

        result = analyzer.analyze(make_attempt(device_fingerprint="fp_unknown"))

        assert result.risk_score == 10


class TestVelocity:
    """Same-user attempts inside the velocity window."""

    def _run(self, analyzer, make_attempt, clock, count):
        result = None
        for _ in range(count):
            result = analyzer.analyze(make_attempt())
            clock.advance(seconds=30)
        return result

    def test_single_attempt_has_no_velocity(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        result = self._run(analyzer, make_attempt, clock, 1)
        assert result.reasons == []

    def test_second_attempt_is_moderate(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        result = self._run(analyzer, make_attempt, clock, 2)
        assert result.reasons == [RiskFactor.MODERATE_VELOCITY.value]
        assert result.risk_score == 20

    def test_fourth_attempt_is_high(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        result = self._run(analyzer, make_attempt, clock, 4)
        assert result.reasons == [RiskFactor.HIGH_VELOCITY.value]
        assert result.risk_score == 40

    def test_attempts_outside_window_are_ignored(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        analyzer.analyze(make_attempt())
        clock.advance(minutes=6)

        result = analyzer.analyze(make_attempt())

        assert result.reasons == []


class TestFailurePatterns:
    """Failed attempts from one IP."""

    def test_multiple_failures(self, analyzer, make_attempt):
        for _ in range(3):
            analyzer.analyze(make_attempt(user_id=None, is_successful=False))

        result = analyzer.analyze(make_attempt(user_id=None, is_successful=False))

        assert RiskFactor.MULTIPLE_FAILURES.value in result.reasons
        assert result.risk_score == 50

    def test_brute_force_blocks(self, analyzer, make_attempt, uow, alerts):
        for _ in range(5):
            analyzer.analyze(make_attempt(user_id=None, is_successful=False))

        result = analyzer.analyze(make_attempt(user_id=None, is_successful=False))

        assert RiskFactor.BRUTE_FORCE_PATTERN.value in result.reasons
        assert result.recommended_action == ResponseAction.BLOCK
        record = uow.anomalies.get(result.anomaly_id)
        assert record.user_id is None
        assert record.anomaly_type == AnomalyType.VELOCITY
        assert alerts.alerts[-1]["user_id"] is None

    def test_failures_from_other_ips_do_not_count(self, analyzer, make_attempt):
        for i in range(5):
            analyzer.analyze(make_attempt(user_id=None, ip_address=f"198.51.100.{i}", is_successful=False))

        result = analyzer.analyze(make_attempt(user_id=None, is_successful=False))

        assert result.reasons == [RiskFactor.NEW_USER.value]

    def test_failed_login_updates_failed_total(self, analyzer, make_attempt, seed_baseline, uow, user):
        seed_baseline()

        analyzer.analyze(make_attempt(is_successful=False))

        baseline = uow.baselines.get(user.user_id)
        assert baseline.total_failed_logins == 1
        assert baseline.total_successful_logins == 12


class TestScoringRules:
    """Score bounds, severity buckets and actions."""

    def test_score_is_clamped(self, analyzer, make_attempt, seed_baseline, clock):
        seed_baseline()
        clock.set(hour=3)

        result = analyzer.analyze(make_attempt(
            country="US", region="CA", city="San Francisco", device_fingerprint="fp_unknown"
        ))

        assert result.risk_score == 100
        assert result.severity == Severity.CRITICAL
        assert result.recommended_action == ResponseAction.BLOCK

    def test_scorecard_clamps_both_ends(self):
        card = ScoreCard(score=-10)
        assert card.clamped == 0
        card.score = 250
        assert card.clamped == 100

    @pytest.mark.parametrize("score,expected", [
        (0, Severity.MINIMAL),
        (29, Severity.MINIMAL),
        (30, Severity.LOW),
        (50, Severity.MEDIUM),
        (70, Severity.HIGH),
        (89, Severity.HIGH),
        (90, Severity.CRITICAL),
    ])
    def test_severity_buckets(self, score, expected):
        assert classify_severity(score) == expected

    @pytest.mark.parametrize("score,expected", [
        (49, ResponseAction.ALLOW),
        (50, ResponseAction.CHALLENGE),
        (69, ResponseAction.CHALLENGE),
        (70, ResponseAction.STEP_UP),
        (90, ResponseAction.BLOCK),
    ])
    def test_action_thresholds(self, analyzer, score, expected):
        assert analyzer.determine_action(score, []) == expected

    def test_brute_force_blocks_at_any_score(self, analyzer):
        action = analyzer.determine_action(10, [RiskFactor.BRUTE_FORCE_PATTERN.value])
        assert action == ResponseAction.BLOCK

    def test_recommendations(self):
        recommendations = LoginRiskAnalyzer.build_recommendations(
            [RiskFactor.NEW_COUNTRY.value, RiskFactor.NEW_DEVICE.value], 80
        )

        assert len(recommendations) == 3
        assert recommendations[-1] == MONITORING_RECOMMENDATION


class TestSideEffects:
    """Persistence and alerting around one analysis."""

    def test_anomaly_recorded_and_alerted(self, analyzer, make_attempt, seed_baseline, uow, alerts):
        seed_baseline()

        result = analyzer.analyze(make_attempt(country="US", region="CA", city="San Francisco"))

        record = uow.anomalies.get(result.anomaly_id)
        assert record.anomaly_type == AnomalyType.LOCATION
        assert record.login_attempt_id == result.login_attempt_id
        assert len(alerts.alerts) == 1
        assert alerts.alerts[0]["severity"] == "High"
        assert alerts.alerts[0]["requires_action"] is True

    def test_non_anomalous_attempt_has_no_record(self, analyzer, make_attempt, seed_baseline, alerts):
        seed_baseline()

        result = analyzer.analyze(make_attempt())

        assert result.anomaly_id is None
        assert alerts.alerts == []

    def test_storage_failure_writes_nothing(self, analyzer, make_attempt, seed_baseline, uow, user, clock, alerts):
        seed_baseline()

        def failing_add(record):
            raise PersistenceError("table unavailable", operation="add_anomaly")

        uow.anomalies.add = failing_add

        with pytest.raises(PersistenceError):
            analyzer.analyze(make_attempt(country="US", region="CA", city="San Francisco"))

        assert uow.login_attempts.count_by_user_since(user.user_id, clock() - timedelta(hours=1)) == 0
        assert uow.baselines.get(user.user_id).recent_locations == ["BR,SP,Sao Paulo"]
        assert alerts.alerts == []
        assert uow.in_transaction is False
