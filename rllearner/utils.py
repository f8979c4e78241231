from __future__ import annotations

import math
import random
import time
from typing import Optional, Sequence

import numpy as np

from .errors import ShapeMismatchError


def set_global_seed(seed: int) -> None:
    seed = int(seed)
    random.seed(seed)
    np.random.seed(seed)


def as_state_vector(values: Sequence[float], state_size: int, name: str = "state") -> np.ndarray:
    arr = np.asarray(values, dtype=np.float32)
    if arr.ndim != 1 or arr.shape[0] != int(state_size):
        raise ShapeMismatchError(f"{name} must have shape ({int(state_size)},), got {arr.shape}")
    return arr


def as_timestamp(value: Optional[float]) -> float:
    """Epoch seconds as a finite float; None means now."""
    if value is None:
        return time.time()
    if isinstance(value, bool):
        raise TypeError("timestamp must be a number, got bool")
    ts = float(value)
    if not math.isfinite(ts):
        raise ValueError(f"timestamp must be finite, got {value!r}")
    return ts
