"""
Unit tests for manifest parsing and status conditions.
"""

from __future__ import annotations

import pytest

from promscaler.core.entities import (
    AutoscalerConfig,
    AutoscalerStatus,
    BehaviorSpec,
    ConditionStatus,
    ConditionType,
    Mode,
)


def _resource(**spec_overrides):
    spec = {
        "targetRef": {"apiVersion": "apps/v1", "kind": "Deployment", "name": "web"},
        "minReplicas": 2,
        "maxReplicas": 10,
        "prometheus": {"url": "http://prometheus:9090", "authSecretRef": "prom-auth"},
        "metrics": [
            {
                "name": "cpu",
                "promQL": "avg(rate(cpu[1m]))",
                "weight": 2,
                "scaleUp": {"threshold": 70, "step": 2},
                "scaleDown": {"threshold": 20, "step": 1},
            }
        ],
    }
    spec.update(spec_overrides)
    return {"metadata": {"name": "web", "namespace": "shop"}, "spec": spec}


def test_parse_full_resource():
    config = AutoscalerConfig.from_dict(
        _resource(
            mode="DryRun",
            aggregation="Weighted",
            behavior={
                "stabilizationWindowSeconds": 300,
                "scaleUpCooldownSeconds": 60,
                "maxScaleDownStepPercent": 20,
            },
        )
    )

    assert config.key == "shop/web"
    assert config.target.key == "shop/web"
    assert config.min_count == 2
    assert config.max_count == 10
    assert config.mode is Mode.DRY_RUN
    assert config.is_dry_run
    assert config.aggregation == "weighted"
    assert config.prometheus.auth_secret_ref == "prom-auth"
    metric = config.metrics[0]
    assert metric.promql == "avg(rate(cpu[1m]))"
    assert metric.effective_weight == 2.0
    assert metric.scale_up.threshold == 70.0 and metric.scale_up.step == 2
    assert metric.scale_down.step == 1
    assert config.behavior == BehaviorSpec(
        stabilization_window_seconds=300,
        scale_up_cooldown_seconds=60,
        max_scale_down_step_percent=20,
    )


def test_defaults_for_optional_fields():
    raw = _resource()
    del raw["spec"]["minReplicas"]
    raw["spec"]["metrics"][0].pop("weight")

    config = AutoscalerConfig.from_dict(raw)

    assert config.min_count == 1
    assert config.mode is Mode.APPLY
    assert config.aggregation == "max"
    assert config.behavior is None
    assert config.metrics[0].weight is None
    assert config.metrics[0].effective_weight == 1.0


def test_flat_mapping_is_accepted():
    config = AutoscalerConfig.from_dict(
        {
            "name": "api",
            "namespace": "shop",
            "targetRef": {"name": "api", "namespace": "other"},
            "maxReplicas": 3,
            "prometheus": {"url": "http://prom"},
            "metrics": [{"name": "qps", "promql": "sum(rate(http[1m]))"}],
        }
    )

    assert config.key == "shop/api"
    assert config.target.key == "other/api"
    assert config.metrics[0].promql == "sum(rate(http[1m]))"


def test_bounds_are_not_enforced_at_parse_time():
    config = AutoscalerConfig.from_dict(_resource(minReplicas=0, maxReplicas=0))
    assert (config.min_count, config.max_count) == (0, 0)


def test_integral_floats_are_accepted():
    config = AutoscalerConfig.from_dict(
        _resource(minReplicas=2.0, maxReplicas=8.0, behavior={"scaleUpCooldownSeconds": 60.0})
    )

    assert (config.min_count, config.max_count) == (2, 8)
    assert config.behavior.scale_up_cooldown_seconds == 60


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"targetRef": {}}, "targetRef"),
        ({"prometheus": {"url": ""}}, "prometheus.url"),
        ({"mode": "Sometimes"}, "mode"),
        ({"metrics": {"name": "cpu"}}, "metrics"),
        ({"metrics": [{"name": "cpu", "promQL": "a"}, {"name": "cpu", "promQL": "b"}]}, "duplicate"),
        ({"metrics": [{"name": "cpu", "weight": -1}]}, "non-negative"),
        ({"metrics": [{"name": "cpu", "scaleUp": {"threshold": 1, "step": -2}}]}, "non-negative"),
        ({"metrics": [{"name": "cpu", "scaleUp": {"step": 2}}]}, "threshold"),
        ({"metrics": [{"name": "cpu", "scaleDown": {"threshold": "high", "step": 1}}]}, "numeric"),
        ({"behavior": {"scaleUpCooldownSeconds": "soon"}}, "integer"),
        ({"minReplicas": "two"}, "minReplicas"),
        ({"minReplicas": 2.7}, "minReplicas"),
        ({"maxReplicas": "9.5"}, "maxReplicas"),
        ({"metrics": [{"name": "cpu", "scaleUp": {"threshold": 1, "step": 1.5}}]}, "step"),
        ({"behavior": {"maxScaleUpStepPercent": 12.5}}, "maxScaleUpStepPercent"),
    ],
)
def test_invalid_resources_raise(overrides, message):
    with pytest.raises(ValueError, match=message):
        AutoscalerConfig.from_dict(_resource(**overrides))


def test_missing_name_raises():
    raw = _resource()
    raw["metadata"]["name"] = ""
    with pytest.raises(ValueError, match="name"):
        AutoscalerConfig.from_dict(raw)


def test_set_condition_inserts_and_updates():
    status = AutoscalerStatus()

    status.set_condition(ConditionType.READY, ConditionStatus.TRUE, "SteadyState", "ok", now=10.0)
    status.set_condition("Ready", ConditionStatus.TRUE, "DryRun", "still ok", now=20.0)

    assert len(status.conditions) == 1
    ready = status.get_condition(ConditionType.READY)
    assert ready.reason == "DryRun"
    assert ready.message == "still ok"
    assert ready.last_transition_time == 10.0

    status.set_condition("Ready", ConditionStatus.FALSE, "ScaleFailed", "boom", now=30.0)
    assert ready.status is ConditionStatus.FALSE
    assert ready.last_transition_time == 30.0


def test_status_dict_round_trip_is_independent():
    status = AutoscalerStatus(current_count=3, desired_count=5, last_scale_time=42.0, last_samples={"cpu": 0.5})
    status.set_condition("TargetFound", ConditionStatus.TRUE, "Found", "found", now=1.0)

    payload = status.to_dict()
    copy = status.copy()
    copy.last_samples["cpu"] = 9.0
    copy.conditions[0].reason = "Changed"

    assert payload["currentReplicas"] == 3
    assert payload["lastPrometheusSample"] == {"cpu": 0.5}
    assert payload["conditions"][0]["status"] == "True"
    assert status.last_samples == {"cpu": 0.5}
    assert status.conditions[0].reason == "Found"
    assert AutoscalerStatus.from_dict(payload) == status
