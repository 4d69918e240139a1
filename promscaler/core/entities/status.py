"""
Reported status for an autoscaler, including its health conditions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionType(str, Enum):
    """Condition types surfaced by the reconciliation loop."""

    READY = "Ready"
    TARGET_FOUND = "TargetFound"
    PROMETHEUS_AVAILABLE = "PrometheusAvailable"
    SPEC_VALID = "SpecValid"


@dataclass
class Condition:
    type: str
    status: ConditionStatus
    reason: str
    message: str
    last_transition_time: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "Condition":
        return cls(
            type=str(values["type"]),
            status=ConditionStatus(values.get("status", ConditionStatus.UNKNOWN.value)),
            reason=str(values.get("reason", "")),
            message=str(values.get("message", "")),
            last_transition_time=float(values.get("lastTransitionTime") or 0.0),
        )


@dataclass
class AutoscalerStatus:
    """What the controller last observed, computed and applied."""

    current_count: Optional[int] = None
    desired_count: Optional[int] = None
    last_scale_time: Optional[float] = None
    last_samples: Dict[str, float] = field(default_factory=dict)
    conditions: List[Condition] = field(default_factory=list)

    def get_condition(self, condition_type: str | ConditionType) -> Optional[Condition]:
        wanted = condition_type.value if isinstance(condition_type, ConditionType) else condition_type
        for condition in self.conditions:
            if condition.type == wanted:
                return condition
        return None

    def set_condition(
        self,
        condition_type: str | ConditionType,
        status: ConditionStatus,
        reason: str,
        message: str,
        now: float,
    ) -> Condition:
        """
        Insert or update a condition; at most one entry exists per type.

        Reason and message always take the latest values. The transition time
        only moves when the status value actually flips.
        """
        wanted = condition_type.value if isinstance(condition_type, ConditionType) else condition_type
        existing = self.get_condition(wanted)
        if existing is None:
            condition = Condition(
                type=wanted,
                status=status,
                reason=reason,
                message=message,
                last_transition_time=now,
            )
            self.conditions.append(condition)
            return condition

        if existing.status != status:
            existing.status = status
            existing.last_transition_time = now
        existing.reason = reason
        existing.message = message
        return existing

    def copy(self) -> "AutoscalerStatus":
        return AutoscalerStatus.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentReplicas": self.current_count,
            "desiredReplicas": self.desired_count,
            "lastScaleTime": self.last_scale_time,
            "lastPrometheusSample": dict(self.last_samples),
            "conditions": [condition.to_dict() for condition in self.conditions],
        }

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "AutoscalerStatus":
        current = values.get("currentReplicas")
        desired = values.get("desiredReplicas")
        last_scale = values.get("lastScaleTime")
        return cls(
            current_count=int(current) if current is not None else None,
            desired_count=int(desired) if desired is not None else None,
            last_scale_time=float(last_scale) if last_scale is not None else None,
            last_samples={str(k): float(v) for k, v in (values.get("lastPrometheusSample") or {}).items()},
            conditions=[Condition.from_dict(item) for item in values.get("conditions") or []],
        )
