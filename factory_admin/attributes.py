"""Workstation data attributes: parameter names, model numbers and limits."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

LIMIT_KEYS = ("CPP", "CTQ", "param_type", "UoM", "LCL", "Low-LCL", "HCL", "High-HCL")
SAMPLE_MODEL_NO = "7.07155.07.9"
SAMPLE_PARAMETERS = (
    "Axial_play_for_ESA",
    "Axial_play_for_ESG",
    "Flap_Screw1_Angle",
    "Flap_screw1_tightening_torque",
    "Flap_Screw1_Torque",
    "Flap_Screw2_Angle",
    "Flap_Screw2_Result",
    "Flap_screw2_tightening_torque",
    "Gap_Adjust_Result",
)

LimitValue = Union[str, float]


class InvalidParameterError(ValueError):
    """A parameter row could not be read from client data."""


def _new_id() -> str:
    return str(uuid.uuid4())


def coerce_limit(key: str, value: Any) -> LimitValue:
    """LCL/HCL style limits become floats when they parse; anything else stays text."""
    if value is None:
        return ""
    if ("LCL" in key or "HCL" in key) and not isinstance(value, bool):
        try:
            return float(value)
        except (TypeError, ValueError):
            pass
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else str(value)


@dataclass
class Parameter:
    parameter: str = ""
    model_no: str = ""
    limits: Dict[str, LimitValue] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "parameter": self.parameter, "model_no": self.model_no, "limits": dict(self.limits)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Parameter":
        if not isinstance(data, Mapping):
            raise InvalidParameterError(f"Parameter rows must be objects, got {type(data).__name__}")
        raw_limits = data.get("limits") or {}
        if not isinstance(raw_limits, Mapping):
            raise InvalidParameterError("limits must be an object")
        unknown = [key for key in raw_limits if key not in LIMIT_KEYS]
        if unknown:
            raise InvalidParameterError(
                f"Unknown limit(s) {', '.join(map(str, unknown))}; expected one of {', '.join(LIMIT_KEYS)}"
            )
        limits = {key: coerce_limit(key, value) for key, value in raw_limits.items()}
        return cls(
            parameter=str(data.get("parameter") or ""),
            model_no=str(data.get("model_no") or ""),
            limits=limits,
            id=str(data.get("id") or _new_id()),
        )


class ParameterSheet:
    """Ordered parameter rows for one workstation. Never empty."""

    def __init__(self, node_id: str, rows: Optional[List[Parameter]] = None) -> None:
        self.node_id = node_id
        self.rows: List[Parameter] = list(rows) if rows else [Parameter()]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def _check(self, position: int) -> None:
        if not 0 <= position < len(self.rows):
            raise IndexError(f"No parameter row at position {position} (sheet has {len(self.rows)})")

    def insert(self, position: int) -> Parameter:
        """Add an empty row directly after ``position``."""
        row = Parameter()
        index = min(max(position + 1, 0), len(self.rows))
        self.rows.insert(index, row)
        return row

    def delete(self, position: int) -> bool:
        """Remove the row at ``position``. The last remaining row is kept."""
        self._check(position)
        if len(self.rows) <= 1:
            return False
        del self.rows[position]
        return True

    def update(self, position: int, name: str, value: Any) -> Parameter:
        """Set ``parameter``/``model_no`` or a ``limits.<KEY>`` field on one row."""
        self._check(position)
        row = self.rows[position]
        if name.startswith("limits."):
            key = name.split(".", 1)[1]
            if key not in LIMIT_KEYS:
                raise KeyError(f"Unknown limit '{key}'; expected one of {', '.join(LIMIT_KEYS)}")
            row.limits[key] = coerce_limit(key, value)
        elif name in ("parameter", "model_no"):
            setattr(row, name, str(value))
        else:
            raise KeyError(f"Unknown field '{name}'")
        return row

    def to_list(self) -> List[Dict[str, Any]]:
        return [row.to_dict() for row in self.rows]

    @classmethod
    def from_list(cls, node_id: str, data: List[Dict[str, Any]]) -> "ParameterSheet":
        return cls(node_id, [Parameter.from_dict(item) for item in data])


def sample_sheet(node_id: str) -> ParameterSheet:
    rows = [Parameter(parameter=name, model_no=SAMPLE_MODEL_NO) for name in SAMPLE_PARAMETERS]
    rows[-1].limits["Low-LCL"] = 0.140000001
    return ParameterSheet(node_id, rows)
