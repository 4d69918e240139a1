"""
Unit tests for the decision engine.
"""

from __future__ import annotations

import pytest

from conftest import make_config
from promscaler.core.entities import DecisionInput, HistorySample
from promscaler.core.errors import ConfigurationError
from promscaler.core.policy import DefaultPolicyEngine
from promscaler.core.policy.engine import project_metric, rate_limit_step

NOW = 1_700_000_000.0


def _decide(config, current, samples, *, last_scale_time=None, history=()):
    engine = DefaultPolicyEngine()
    return engine.decide(
        DecisionInput(
            current_count=current,
            config=config,
            samples=samples,
            now=NOW,
            last_scale_time=last_scale_time,
            history=tuple(history),
        )
    )


def test_scale_up_single_metric():
    config = make_config(min_replicas=2, max_replicas=10)

    decision = _decide(config, 4, {"cpu": 80.0})

    assert decision.desired_count == 6
    assert decision.cooldown_active is False
    assert decision.reason == "metrics=[cpu=80.0000 -> 6], aggregation=max"


def test_weighted_aggregation_truncates():
    config = make_config(
        aggregation="weighted",
        metrics=[
            {"name": "low", "promQL": "q1", "weight": 1, "scaleDown": {"threshold": 50, "step": 2}},
            {"name": "high", "promQL": "q2", "weight": 3, "scaleUp": {"threshold": 50, "step": 2}},
        ],
    )

    decision = _decide(config, 6, {"low": 10.0, "high": 90.0})

    # (4*1 + 8*3) / 4 = 7
    assert decision.desired_count == 7
    assert decision.reason.endswith("aggregation=weighted")


def test_weighted_aggregation_zero_weights_uses_first_projection():
    config = make_config(
        aggregation="weighted",
        metrics=[
            {"name": "a", "promQL": "q1", "weight": 0, "scaleUp": {"threshold": 1, "step": 1}},
            {"name": "b", "promQL": "q2", "weight": 0, "scaleUp": {"threshold": 1, "step": 4}},
        ],
    )

    assert _decide(config, 3, {"a": 5.0, "b": 5.0}).desired_count == 4


def test_scale_down_cooldown_holds_current():
    config = make_config(
        metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 30, "step": 3}}],
        behavior={"scaleDownCooldownSeconds": 60},
    )

    decision = _decide(config, 5, {"cpu": 5.0}, last_scale_time=NOW - 10)

    assert decision.desired_count == 5
    assert decision.cooldown_active is True


def test_scale_up_cooldown_holds_current():
    config = make_config(behavior={"scaleUpCooldownSeconds": 60, "scaleDownCooldownSeconds": 0})

    decision = _decide(config, 4, {"cpu": 80.0}, last_scale_time=NOW - 10)

    assert decision.desired_count == 4
    assert decision.cooldown_active is True


def test_cooldown_only_applies_to_matching_direction():
    config = make_config(behavior={"scaleDownCooldownSeconds": 600})

    decision = _decide(config, 4, {"cpu": 80.0}, last_scale_time=NOW - 10)

    assert decision.desired_count == 6
    assert decision.cooldown_active is False


def test_cooldown_expired_allows_move():
    config = make_config(behavior={"scaleUpCooldownSeconds": 60})

    decision = _decide(config, 4, {"cpu": 80.0}, last_scale_time=NOW - 100)

    assert decision.desired_count == 6
    assert decision.cooldown_active is False


def test_cooldown_ignored_without_last_scale_time():
    config = make_config(behavior={"scaleUpCooldownSeconds": 60})

    assert _decide(config, 4, {"cpu": 80.0}).desired_count == 6


def test_stabilization_window_blocks_dip():
    config = make_config(
        metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 30, "step": 5}}],
        behavior={"stabilizationWindowSeconds": 30},
    )

    decision = _decide(config, 8, {"cpu": 1.0}, history=[HistorySample(NOW - 20, 8)])

    assert decision.desired_count == 8


def test_stabilization_ignores_samples_outside_window():
    config = make_config(
        metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 30, "step": 5}}],
        behavior={"stabilizationWindowSeconds": 30},
    )
    history = [HistorySample(NOW - 40, 8), HistorySample(NOW - 30, 7)]

    assert _decide(config, 8, {"cpu": 1.0}, history=history).desired_count == 3


def test_stabilization_does_not_affect_scale_up():
    config = make_config(behavior={"stabilizationWindowSeconds": 300})

    decision = _decide(config, 4, {"cpu": 80.0}, history=[HistorySample(NOW - 5, 9)])

    assert decision.desired_count == 6


def test_rate_limit_caps_scale_up():
    config = make_config(
        max_replicas=50,
        metrics=[{"name": "cpu", "promQL": "q", "scaleUp": {"threshold": 70, "step": 10}}],
        behavior={"maxScaleUpStepPercent": 20},
    )

    assert _decide(config, 10, {"cpu": 90.0}).desired_count == 12


def test_rate_limit_allows_at_least_one():
    config = make_config(
        metrics=[{"name": "cpu", "promQL": "q", "scaleUp": {"threshold": 70, "step": 5}}],
        behavior={"maxScaleUpStepPercent": 10},
    )

    assert _decide(config, 2, {"cpu": 90.0}).desired_count == 3


def test_rate_limit_caps_scale_down():
    config = make_config(
        max_replicas=20,
        metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 30, "step": 8}}],
        behavior={"maxScaleDownStepPercent": 50},
    )

    assert _decide(config, 10, {"cpu": 1.0}).desired_count == 5


def test_zero_percent_freezes_direction():
    config = make_config(behavior={"maxScaleUpStepPercent": 0})

    assert _decide(config, 4, {"cpu": 80.0}).desired_count == 4


def test_clamp_to_bounds():
    config = make_config(
        min_replicas=3,
        max_replicas=5,
        metrics=[{"name": "cpu", "promQL": "q", "scaleUp": {"threshold": 70, "step": 10}}],
    )

    assert _decide(config, 4, {"cpu": 90.0}).desired_count == 5
    assert _decide(config, 1, {"cpu": 10.0}).desired_count == 3


def test_result_never_below_one_with_misconfigured_bounds():
    config = make_config(
        min_replicas=0,
        max_replicas=0,
        metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 30, "step": 5}}],
    )

    assert _decide(config, 1, {"cpu": 1.0}).desired_count == 1


def test_missing_metric_is_neutral():
    config = make_config(
        aggregation="min",
        metrics=[
            {"name": "cpu", "promQL": "q1", "scaleUp": {"threshold": 70, "step": 2}},
            {"name": "qps", "promQL": "q2", "scaleUp": {"threshold": 100, "step": 3}},
        ],
    )

    decision = _decide(config, 4, {"cpu": 80.0})

    assert decision.desired_count == 4
    assert "qps=<missing> -> 4" in decision.reason


def test_average_truncates_toward_zero():
    config = make_config(
        aggregation="average",
        metrics=[
            {"name": "a", "promQL": "q1"},
            {"name": "b", "promQL": "q2", "scaleUp": {"threshold": 1, "step": 1}},
        ],
    )

    assert _decide(config, 4, {"a": 0.0, "b": 5.0}).desired_count == 4


def test_unknown_aggregation_falls_back_to_max():
    config = make_config(
        aggregation="median",
        metrics=[
            {"name": "a", "promQL": "q1", "scaleUp": {"threshold": 1, "step": 1}},
            {"name": "b", "promQL": "q2", "scaleUp": {"threshold": 1, "step": 3}},
        ],
    )

    decision = _decide(config, 2, {"a": 5.0, "b": 5.0})

    assert decision.desired_count == 5
    assert decision.reason.endswith("aggregation=max")


def test_zero_metrics_raises_configuration_error():
    config = make_config(metrics=[])

    with pytest.raises(ConfigurationError):
        _decide(config, 3, {})


def test_decide_is_deterministic():
    config = make_config(behavior={"stabilizationWindowSeconds": 60, "maxScaleUpStepPercent": 50})
    history = [HistorySample(NOW - 10, 5)]

    first = _decide(config, 4, {"cpu": 80.0}, history=history)
    second = _decide(config, 4, {"cpu": 80.0}, history=history)

    assert first == second


def test_project_metric_scale_down_wins_when_both_fire():
    metric = make_config(
        metrics=[
            {
                "name": "cpu",
                "promQL": "q",
                "scaleUp": {"threshold": 50, "step": 3},
                "scaleDown": {"threshold": 90, "step": 1},
            }
        ]
    ).metrics[0]

    assert project_metric(metric, 70.0, 5) == 4


def test_project_metric_floors_scale_down_at_one():
    metric = make_config(metrics=[{"name": "cpu", "promQL": "q", "scaleDown": {"threshold": 50, "step": 9}}]).metrics[0]

    assert project_metric(metric, 10.0, 3) == 1


@pytest.mark.parametrize(
    "current,percent,expected",
    [(10, None, None), (10, 0, 0), (10, -5, 0), (2, 10, 1), (10, 25, 2), (40, 50, 20)],
)
def test_rate_limit_step(current, percent, expected):
    assert rate_limit_step(current, percent) == expected
