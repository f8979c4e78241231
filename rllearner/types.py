from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Dict, Optional, Sequence, Union

import numpy as np


class Action(IntEnum):
    HOLD = 0
    BUY = 1
    SELL = 2

    @classmethod
    def parse(cls, value: Union["Action", int, str]) -> "Action":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip()
            if name.isdigit():
                return cls.parse(int(name))
            try:
                return cls[name.upper()]
            except KeyError:
                raise ValueError(f"Unknown action name: {value!r}") from None
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError:
                raise ValueError(f"Action index out of range: {value!r}") from None
        raise ValueError(f"Cannot interpret {value!r} as an action.")


@dataclass(frozen=True)
class Transition:
    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    terminal: bool = True


@dataclass(frozen=True)
class TradeOutcome:
    """A closed trade as reported by the trade-outcome source."""

    state_before: Sequence[float]
    action: Union[Action, int, str]
    profit: float
    state_after: Sequence[float]
    timestamp: Optional[float] = None


@dataclass
class ControllerState:
    exploration_rate: float
    learning_rate: float
    train_steps: int = 0
    adjustments: int = 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PerformanceSnapshot:
    total_trades: int = 0
    win_rate: float = 0.0
    avg_profit: float = 0.0
    total_profit: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    balance: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)
