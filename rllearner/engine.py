from __future__ import annotations

import logging
import math
import threading
from collections import deque
from typing import Any, Deque, Dict, Optional

import numpy as np

from .agent import DQNAgent
from .config import AdaptiveConfig, EngineConfig, PerformanceConfig
from .controller import AdaptiveController
from .errors import PersistenceError, ShapeMismatchError
from .metrics import PerformanceTracker, compute_snapshot
from .network import HIDDEN_SIZES
from .persistence import Checkpoint, PathLike, load_checkpoint, save_checkpoint
from .rewards import shape_reward
from .types import Action, PerformanceSnapshot, TradeOutcome, Transition
from .utils import as_state_vector, as_timestamp

logger = logging.getLogger(__name__)


class ContinuousLearningEngine:
    """
    Online learner that turns closed trades into DQN updates.

    learn_from_trade:
      outcome -> shaped reward -> replay buffer -> train step (once the
      buffer holds a full batch) -> performance record -> adaptive controller

    Every public method holds one re-entrant lock, so policy reads never see
    a half-applied update and target syncs are atomic.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        performance: Optional[PerformanceConfig] = None,
        adaptive: Optional[AdaptiveConfig] = None,
    ):
        self.cfg = config or EngineConfig()
        if self.cfg.action_size > len(Action):
            raise ValueError(f"action_size must be at most {len(Action)}.")

        self.agent = DQNAgent(self.cfg)
        self.tracker = PerformanceTracker(performance)
        self.controller = AdaptiveController(adaptive)

        self.recent_rewards: Deque[float] = deque(maxlen=100)
        self._lock = threading.RLock()

        logger.info(
            "ContinuousLearningEngine initialized (state_size=%d, buffer=%d, batch=%d)",
            self.cfg.state_size,
            self.cfg.buffer_size,
            self.cfg.batch_size,
        )

    # ---- policy consumer ----

    def predict(self, state) -> int:
        with self._lock:
            return self.agent.select_action(state, explore=True)

    def select_action(self, state, explore: bool = True) -> int:
        with self._lock:
            return self.agent.select_action(state, explore=explore)

    def action_values(self, state) -> np.ndarray:
        with self._lock:
            return self.agent.action_values(state).copy()

    # ---- trade-outcome source ----

    def learn_from_trade(self, outcome: TradeOutcome) -> Optional[float]:
        """Learn from one closed trade. Returns the training loss, or None if no step ran."""
        with self._lock:
            action = Action.parse(outcome.action)
            if int(action) >= self.cfg.action_size:
                raise ValueError(f"action {action.name} outside action_size={self.cfg.action_size}")
            state = as_state_vector(outcome.state_before, self.cfg.state_size, "state_before")
            next_state = as_state_vector(outcome.state_after, self.cfg.state_size, "state_after")
            reward = shape_reward(outcome.profit)
            timestamp = as_timestamp(outcome.timestamp)

            self.agent.remember(Transition(state, int(action), reward, next_state, terminal=True))
            self.recent_rewards.append(reward)

            loss = self.agent.train_step() if self.agent.can_train() else None

            metrics = self.tracker.record(outcome.profit, timestamp)
            self.controller.maybe_adjust(metrics, self.agent.state)
            return loss

    # ---- observability ----

    def get_metrics(self) -> PerformanceSnapshot:
        with self._lock:
            return self.tracker.get_metrics()

    def should_adjust(self) -> bool:
        with self._lock:
            return self.controller.should_adjust(self.tracker.get_metrics())

    @property
    def exploration_rate(self) -> float:
        with self._lock:
            return self.agent.state.exploration_rate

    @property
    def learning_rate(self) -> float:
        with self._lock:
            return self.agent.state.learning_rate

    @property
    def train_steps(self) -> int:
        with self._lock:
            return self.agent.state.train_steps

    def training_stats(self) -> Dict[str, Any]:
        with self._lock:
            losses = list(self.agent.recent_losses)
            rewards = list(self.recent_rewards)
            return {
                "train_steps": self.agent.state.train_steps,
                "exploration_rate": self.agent.state.exploration_rate,
                "learning_rate": self.agent.state.learning_rate,
                "adjustments": self.agent.state.adjustments,
                "buffer_size": len(self.agent.buffer),
                "last_loss": losses[-1] if losses else None,
                "avg_loss": float(np.mean(losses)) if losses else None,
                "avg_reward": float(np.mean(rewards)) if rewards else 0.0,
            }

    # ---- persistence ----

    def save(self, path: PathLike) -> None:
        with self._lock:
            # same checks as _validate_checkpoint
            lr = self.agent.state.learning_rate
            if not (math.isfinite(lr) and lr > 0.0):
                raise PersistenceError(f"Refusing to save {path}: learning_rate={lr!r} is not positive and finite")
            parameters = self.agent.online.get_parameters()
            if not all(np.all(np.isfinite(p)) for p in parameters):
                raise PersistenceError(f"Refusing to save {path}: parameters contain non-finite values")

            opt = self.agent.online.get_optimizer_state()
            meta = {
                "state_size": self.cfg.state_size,
                "action_size": self.cfg.action_size,
                "hidden_sizes": list(HIDDEN_SIZES),
                "controller": self.agent.state.to_dict(),
                "adam_t": opt["t"],
                "metrics": self.tracker.get_metrics().to_dict(),
                "history": {
                    "profits": self.tracker.profits(),
                    "timestamps": self.tracker.timestamps(),
                },
                "rng": {
                    "policy": self.agent.rng.bit_generator.state,
                    "buffer": self.agent.buffer.rng.bit_generator.state,
                },
            }
            checkpoint = Checkpoint(
                parameters=parameters,
                adam_m=opt["m"],
                adam_v=opt["v"],
                meta=meta,
            )
            save_checkpoint(path, checkpoint)
            logger.info("saved engine checkpoint to %s (train_steps=%d)", path, self.agent.state.train_steps)

    def load(self, path: PathLike) -> None:
        """
        Restore model, optimizer, controller state, trade history and RNG
        state from `path`. The checkpoint is fully validated before anything
        is applied; on error the engine is left untouched. The replay buffer
        is not part of the checkpoint and keeps its current contents.
        """
        with self._lock:
            checkpoint = load_checkpoint(path)
            try:
                restored = self._validate_checkpoint(checkpoint)
            except (ShapeMismatchError, ValueError, KeyError, TypeError) as e:
                raise PersistenceError(f"Invalid checkpoint {path}: {e}") from e

            online = self.agent.online
            online.set_parameters(restored["parameters"])
            online.set_optimizer_state({"t": restored["adam_t"], "m": restored["adam_m"], "v": restored["adam_v"]})
            self.agent.update_target()

            state = self.agent.state
            for k, v in restored["controller"].items():
                setattr(state, k, v)

            self.tracker.restore(restored["profits"], restored["timestamps"])
            self.agent.rng = restored["policy_rng"]
            self.agent.buffer.rng = restored["buffer_rng"]
            logger.info("loaded engine checkpoint from %s (train_steps=%d)", path, state.train_steps)

    def _validate_checkpoint(self, checkpoint: Checkpoint) -> Dict[str, Any]:
        meta = checkpoint.meta
        if int(meta["state_size"]) != self.cfg.state_size or int(meta["action_size"]) != self.cfg.action_size:
            raise ShapeMismatchError(
                f"checkpoint is for state_size={meta['state_size']} action_size={meta['action_size']}, "
                f"engine has state_size={self.cfg.state_size} action_size={self.cfg.action_size}"
            )
        if list(meta["hidden_sizes"]) != list(HIDDEN_SIZES):
            raise ShapeMismatchError(f"checkpoint hidden sizes {meta['hidden_sizes']} != {list(HIDDEN_SIZES)}")

        online = self.agent.online
        parameters = online.check_arrays(checkpoint.parameters, "parameters")
        adam_m = online.check_arrays(checkpoint.adam_m, "adam m")
        adam_v = online.check_arrays(checkpoint.adam_v, "adam v")
        for arr in parameters:
            if not np.all(np.isfinite(arr)):
                raise ValueError("checkpoint parameters contain non-finite values")
        adam_t = int(meta["adam_t"])
        if adam_t < 0:
            raise ValueError("adam_t must be non-negative")

        c = meta["controller"]
        controller = {
            "exploration_rate": float(c["exploration_rate"]),
            "learning_rate": float(c["learning_rate"]),
            "train_steps": int(c["train_steps"]),
            "adjustments": int(c.get("adjustments", 0)),
        }
        if not 0.0 <= controller["exploration_rate"] <= 1.0:
            raise ValueError("exploration_rate must be in [0, 1]")
        if not (math.isfinite(controller["learning_rate"]) and controller["learning_rate"] > 0.0):
            raise ValueError("learning_rate must be positive and finite")
        if controller["train_steps"] < 0 or controller["adjustments"] < 0:
            raise ValueError("counters must be non-negative")

        profits = [float(x) for x in meta["history"]["profits"]]
        timestamps = [float(x) for x in meta["history"]["timestamps"]]
        if len(profits) != len(timestamps):
            raise ValueError("history profits and timestamps differ in length")
        if not all(math.isfinite(p) for p in profits):
            raise ValueError("history contains non-finite profits")
        perf = self.tracker.cfg
        snapshot = compute_snapshot(profits, perf.initial_balance, perf.trading_days)
        stored = meta.get("metrics")
        if stored is not None and int(stored["total_trades"]) != snapshot.total_trades:
            raise ValueError("stored metrics do not match the trade history")

        policy_rng = np.random.default_rng()
        policy_rng.bit_generator.state = meta["rng"]["policy"]
        buffer_rng = np.random.default_rng()
        buffer_rng.bit_generator.state = meta["rng"]["buffer"]

        return {
            "parameters": parameters,
            "adam_m": adam_m,
            "adam_v": adam_v,
            "adam_t": adam_t,
            "controller": controller,
            "profits": profits,
            "timestamps": timestamps,
            "policy_rng": policy_rng,
            "buffer_rng": buffer_rng,
        }
