from __future__ import annotations

import math
import time
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import PerformanceConfig
from .types import PerformanceSnapshot


def compute_snapshot(profits: Sequence[float], initial_balance: float, trading_days: int = 252) -> PerformanceSnapshot:
    p = np.asarray(profits, dtype=np.float64)
    n = int(p.size)
    balance = float(initial_balance) + float(p.sum())
    if n == 0:
        return PerformanceSnapshot(balance=float(initial_balance))

    total = float(p.sum())
    win_rate = float(np.count_nonzero(p > 0)) / n

    # ---- Sharpe-like: per-trade returns on the nominal balance ----
    sharpe = 0.0
    if n >= 2:
        rets = p / float(initial_balance)
        std = float(np.std(rets))
        if std > 1e-12:
            sharpe = float(np.mean(rets) / std * math.sqrt(trading_days))

    equity = pd.Series(np.concatenate([[float(initial_balance)], float(initial_balance) + np.cumsum(p)]))
    mdd = float(_drawdown(equity).max())

    return PerformanceSnapshot(
        total_trades=n,
        win_rate=win_rate,
        avg_profit=total / n,
        total_profit=total,
        sharpe_ratio=sharpe,
        max_drawdown=mdd,
        balance=balance,
    )


def _drawdown(equity: pd.Series) -> pd.Series:
    if len(equity) < 2:
        return pd.Series(np.zeros(len(equity)))
    cummax = equity.cummax()
    # a non-positive peak has no meaningful fractional drawdown
    dd = (cummax - equity) / cummax.where(cummax > 0)
    return dd.fillna(0.0)


class PerformanceTracker:
    """Append-only trade record with metrics recomputed on every update."""

    def __init__(self, cfg: Optional[PerformanceConfig] = None):
        self.cfg = cfg or PerformanceConfig()
        self._profits: List[float] = []
        self._timestamps: List[float] = []
        self._snapshot = compute_snapshot([], self.cfg.initial_balance, self.cfg.trading_days)

    def __len__(self) -> int:
        return len(self._profits)

    def record(self, profit: float, timestamp: Optional[float] = None) -> PerformanceSnapshot:
        p = float(profit)
        if not math.isfinite(p):
            raise ValueError(f"profit must be finite, got {profit!r}")
        self._profits.append(p)
        self._timestamps.append(float(time.time() if timestamp is None else timestamp))
        self._snapshot = compute_snapshot(self._profits, self.cfg.initial_balance, self.cfg.trading_days)
        return self._snapshot

    def get_metrics(self) -> PerformanceSnapshot:
        return self._snapshot

    def profits(self) -> List[float]:
        return list(self._profits)

    def timestamps(self) -> List[float]:
        return list(self._timestamps)

    def restore(self, profits: Sequence[float], timestamps: Sequence[float]) -> None:
        if len(profits) != len(timestamps):
            raise ValueError("profits and timestamps must have the same length.")
        snapshot = compute_snapshot(profits, self.cfg.initial_balance, self.cfg.trading_days)
        self._profits = [float(x) for x in profits]
        self._timestamps = [float(x) for x in timestamps]
        self._snapshot = snapshot

    def history_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "trade": np.arange(1, len(self._profits) + 1, dtype=np.int64),
                "timestamp": np.asarray(self._timestamps, dtype=np.float64),
                "profit": np.asarray(self._profits, dtype=np.float64),
            }
        )
        df["balance"] = float(self.cfg.initial_balance) + df["profit"].cumsum()
        equity = pd.concat([pd.Series([float(self.cfg.initial_balance)]), df["balance"]], ignore_index=True)
        df["drawdown"] = _drawdown(equity).iloc[1:].to_numpy()
        return df
