from __future__ import annotations

from analytics.alerts import AlertEvaluator
from core.models.market import FeatureRow


def row(ticker="A", mid=50.0, spread=2.0, ts="2024-01-01T00:00:00Z") -> FeatureRow:
    return FeatureRow(ticker=ticker, ts=ts, mid=mid, spread=spread)


def test_first_observation_never_alerts():
    evaluator = AlertEvaluator()
    assert evaluator.evaluate(row(mid=99, spread=80)) == []
    assert evaluator.last_seen("A").mid == 99


def test_price_jump_fires_with_delta_score():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row(mid=50))

    alerts = evaluator.evaluate(row(mid=56, ts="2024-01-01T00:01:00Z"))

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.type == "price_jump"
    assert alert.score == 6
    assert alert.ts == "2024-01-01T00:01:00Z"
    assert "50" in alert.details and "56" in alert.details


def test_price_jump_threshold_is_inclusive():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row(mid=50))
    assert [a.type for a in evaluator.evaluate(row(mid=45))] == ["price_jump"]


def test_small_move_does_not_alert():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row(mid=50))
    assert evaluator.evaluate(row(mid=54.9)) == []


def test_price_jump_requires_positive_mids():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row(mid=0))
    assert evaluator.evaluate(row(mid=60)) == []
    assert evaluator.evaluate(row(mid=0)) == []


def test_wide_spread_fires_even_without_move():
    evaluator = AlertEvaluator(spread_threshold=10)
    evaluator.evaluate(row(mid=50, spread=2))

    alerts = evaluator.evaluate(row(mid=50, spread=12))

    assert [a.type for a in alerts] == ["wide_spread"]
    assert alerts[0].score == 12


def test_both_rules_can_fire_on_one_row():
    evaluator = AlertEvaluator(jump_threshold=5, spread_threshold=10)
    evaluator.evaluate(row(mid=50, spread=2))
    alerts = evaluator.evaluate(row(mid=70, spread=10))
    assert sorted(a.type for a in alerts) == ["price_jump", "wide_spread"]


def test_state_advances_even_when_nothing_fires():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row(mid=50))
    evaluator.evaluate(row(mid=53))
    # 53 -> 57 is under the threshold even though 50 -> 57 would not be
    assert evaluator.evaluate(row(mid=57)) == []
    assert evaluator.last_seen("A").mid == 57


def test_tickers_are_tracked_independently():
    evaluator = AlertEvaluator(jump_threshold=5)
    evaluator.evaluate(row("A", mid=50))
    assert evaluator.evaluate(row("B", mid=90)) == []
    assert evaluator.tracked_count == 2
    assert evaluator.last_seen("C") is None


def test_identical_rows_do_not_alert():
    evaluator = AlertEvaluator()
    evaluator.evaluate(row(mid=50, spread=2))
    assert evaluator.evaluate(row(mid=50, spread=2)) == []
    assert evaluator.tracked_count == 1


def test_non_finite_values_never_alert():
    evaluator = AlertEvaluator(jump_threshold=5, spread_threshold=10)
    evaluator.evaluate(row(mid=50))

    assert evaluator.evaluate(row(mid=float("nan"), spread=float("nan"))) == []
    assert evaluator.evaluate(row(mid=50)) == []
    assert evaluator.evaluate(row(mid=float("nan"), spread=2.0)) == []
