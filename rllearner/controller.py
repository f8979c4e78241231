from __future__ import annotations

import logging
from typing import Optional

from .config import AdaptiveConfig
from .types import ControllerState, PerformanceSnapshot

logger = logging.getLogger(__name__)


class AdaptiveController:
    """
    Performance-driven hyperparameter control.

    Adjusts when any of:
      - more than 50 trades and win rate below 0.45
      - more than 100 trades and Sharpe-like ratio below 0.5
      - max drawdown above 0.20

    An adjustment applies, independently:
      - win rate < 0.45 -> learning rate * 0.9, else win rate > 0.60 -> * 1.1
      - Sharpe < 0.5    -> epsilon = min(epsilon * 1.2, 0.3)

    The learning rate is deliberately left unbounded.
    """

    def __init__(self, cfg: Optional[AdaptiveConfig] = None):
        self.cfg = cfg or AdaptiveConfig()

    def should_adjust(self, metrics: PerformanceSnapshot) -> bool:
        cfg = self.cfg
        if metrics.total_trades > cfg.min_trades_win_rate and metrics.win_rate < cfg.low_win_rate:
            return True
        if metrics.total_trades > cfg.min_trades_sharpe and metrics.sharpe_ratio < cfg.low_sharpe:
            return True
        return metrics.max_drawdown > cfg.max_drawdown

    def adjust(self, metrics: PerformanceSnapshot, state: ControllerState) -> None:
        cfg = self.cfg
        old_lr, old_eps = state.learning_rate, state.exploration_rate

        if metrics.win_rate < cfg.low_win_rate:
            state.learning_rate *= cfg.lr_decrease
        elif metrics.win_rate > cfg.high_win_rate:
            state.learning_rate *= cfg.lr_increase

        if metrics.sharpe_ratio < cfg.low_sharpe:
            state.exploration_rate = min(state.exploration_rate * cfg.epsilon_boost, cfg.epsilon_cap)

        state.adjustments += 1
        logger.info(
            "adaptive adjustment #%d (trades=%d win_rate=%.3f sharpe=%.3f mdd=%.3f): lr %.6g -> %.6g, epsilon %.4f -> %.4f",
            state.adjustments,
            metrics.total_trades,
            metrics.win_rate,
            metrics.sharpe_ratio,
            metrics.max_drawdown,
            old_lr,
            state.learning_rate,
            old_eps,
            state.exploration_rate,
        )

    def maybe_adjust(self, metrics: PerformanceSnapshot, state: ControllerState) -> bool:
        if not self.should_adjust(metrics):
            return False
        self.adjust(metrics, state)
        return True
