"""Value -> intensity scales.

A scale turns a raw data value into an intensity in [0, 1] that drives the
colormap lookup. The set of scales is closed: linear, log, exponential and
identity, told apart by their `kind` field.
"""

from typing import Annotated, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, Field, TypeAdapter, model_validator


def _as_output(result: np.ndarray):
    return float(result) if np.ndim(result) == 0 else result


class _BoundedScale(BaseModel):
    model_config = {"frozen": True}

    min: float
    max: float

    @model_validator(mode="after")
    def _check_bounds(self):
        if not (np.isfinite(self.min) and np.isfinite(self.max)) or self.min >= self.max:
            raise ValueError(f"Scale needs finite min < max, got min={self.min}, max={self.max}")
        return self

    def _linear(self, value) -> np.ndarray:
        value = np.asarray(value, dtype=np.float64)
        return np.clip((value - self.min) / (self.max - self.min), 0.0, 1.0)


class LinearScale(_BoundedScale):
    """clamp((value - min) / (max - min), 0, 1)"""
    kind: Literal["linear"] = "linear"

    def normalize(self, value):
        return _as_output(self._linear(value))


class LogScale(_BoundedScale):
    """log10(1 + value - min) / log10(1 + max - min), clamped to [min, max] first."""
    kind: Literal["log"] = "log"

    def normalize(self, value):
        value = np.clip(np.asarray(value, dtype=np.float64), self.min, self.max)
        return _as_output(np.log10(1.0 + value - self.min) / np.log10(1.0 + self.max - self.min))


class ExponentialScale(_BoundedScale):
    """(exp(t) - 1) / (e - 1) with t the clamped linear intensity."""
    kind: Literal["exponential"] = "exponential"

    def normalize(self, value):
        return _as_output(np.expm1(self._linear(value)) / np.expm1(1.0))


class IdentityScale(BaseModel):
    """Values are already intensities; only clamps to [0, 1]."""
    model_config = {"frozen": True}

    kind: Literal["identity"] = "identity"

    def normalize(self, value):
        return _as_output(np.clip(np.asarray(value, dtype=np.float64), 0.0, 1.0))


Scale = Annotated[
    Union[LinearScale, LogScale, ExponentialScale, IdentityScale],
    Field(discriminator="kind"),
]

SCALE_TYPES = (LinearScale, LogScale, ExponentialScale, IdentityScale)
SCALE_KINDS = ("linear", "log", "exponential", "identity")

_scale_adapter = TypeAdapter(Scale)


def parse_scale(data: dict):
    """Build a scale from a mapping such as {"kind": "log", "min": 0, "max": 10}."""
    return _scale_adapter.validate_python(data)


def make_scale(kind: str = "linear", vmin: Optional[float] = None, vmax: Optional[float] = None):
    """
    Build a scale by name.

    Args:
        kind: One of SCALE_KINDS
        vmin/vmax: Value range, required for every kind except "identity"

    Raises:
        ValueError: for an unknown kind or a missing/invalid range
    """
    if kind not in SCALE_KINDS:
        raise ValueError(f"Unknown scale '{kind}', expected one of {SCALE_KINDS}")
    if kind == "identity":
        return IdentityScale()
    if vmin is None or vmax is None:
        raise ValueError(f"Scale '{kind}' needs both vmin and vmax")
    return parse_scale({"kind": kind, "min": vmin, "max": vmax})
