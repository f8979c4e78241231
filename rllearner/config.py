from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    state_size: int = 15
    action_size: int = 3

    gamma: float = 0.95
    learning_rate: float = 1e-3
    max_grad_norm: float = 10.0

    # replay
    buffer_size: int = 10_000
    batch_size: int = 32

    # target net (hard update, counted in train steps)
    target_update_every: int = 100

    # exploration (multiplicative decay per train step)
    epsilon_start: float = 1.0
    epsilon_decay: float = 0.995
    epsilon_min: float = 0.01

    seed: int = 42

    def __post_init__(self) -> None:
        if int(self.state_size) <= 0:
            raise ValueError("state_size must be positive.")
        if int(self.action_size) < 2:
            raise ValueError("action_size must be at least 2.")
        if not 0.0 <= float(self.gamma) <= 1.0:
            raise ValueError("gamma must be in [0, 1].")
        if float(self.learning_rate) <= 0.0:
            raise ValueError("learning_rate must be positive.")
        if int(self.buffer_size) <= 0:
            raise ValueError("buffer_size must be positive.")
        if int(self.batch_size) <= 0:
            raise ValueError("batch_size must be positive.")
        if int(self.target_update_every) <= 0:
            raise ValueError("target_update_every must be positive.")
        if not 0.0 <= float(self.epsilon_min) <= float(self.epsilon_start) <= 1.0:
            raise ValueError("need 0 <= epsilon_min <= epsilon_start <= 1.")
        if not 0.0 < float(self.epsilon_decay) <= 1.0:
            raise ValueError("epsilon_decay must be in (0, 1].")


@dataclass(frozen=True)
class PerformanceConfig:
    initial_balance: float = 10_000.0
    trading_days: int = 252  # annualization for the Sharpe-like ratio

    def __post_init__(self) -> None:
        if float(self.initial_balance) <= 0.0:
            raise ValueError("initial_balance must be positive.")
        if int(self.trading_days) <= 0:
            raise ValueError("trading_days must be positive.")


@dataclass(frozen=True)
class AdaptiveConfig:
    # trigger conditions
    min_trades_win_rate: int = 50
    min_trades_sharpe: int = 100
    low_win_rate: float = 0.45
    high_win_rate: float = 0.60
    low_sharpe: float = 0.5
    max_drawdown: float = 0.20

    # mutations
    lr_decrease: float = 0.9
    lr_increase: float = 1.1
    epsilon_boost: float = 1.2
    epsilon_cap: float = 0.3

    def __post_init__(self) -> None:
        if int(self.min_trades_win_rate) < 0 or int(self.min_trades_sharpe) < 0:
            raise ValueError("minimum trade counts must be non-negative.")
        for name in ("low_win_rate", "high_win_rate", "max_drawdown", "epsilon_cap"):
            if not 0.0 <= float(getattr(self, name)) <= 1.0:
                raise ValueError(f"{name} must be in [0, 1].")
        if float(self.low_win_rate) > float(self.high_win_rate):
            raise ValueError("low_win_rate must not exceed high_win_rate.")
        for name in ("lr_decrease", "lr_increase", "epsilon_boost"):
            if float(getattr(self, name)) <= 0.0:
                raise ValueError(f"{name} must be positive.")
