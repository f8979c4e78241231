from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional, Tuple

import numpy as np

from .buffer import ReplayBuffer
from .config import EngineConfig
from .errors import ShapeMismatchError
from .network import QNetwork
from .types import ControllerState, Transition

logger = logging.getLogger(__name__)


class DQNAgent:
    """
    Online DQN components:
      - Experience Replay (uniform, with replacement)
      - Target Network (hard update every `target_update_every` train steps)
      - Multiplicative epsilon decay with a floor

    The learning rate is read from `self.state` on every step but only the
    adaptive controller changes it.
    """

    def __init__(self, cfg: EngineConfig):
        self.cfg = cfg
        self.rng = np.random.default_rng(int(cfg.seed))

        self.online = QNetwork(cfg.state_size, cfg.action_size, seed=int(cfg.seed), max_grad_norm=cfg.max_grad_norm)
        self.target = QNetwork(cfg.state_size, cfg.action_size, seed=int(cfg.seed), max_grad_norm=cfg.max_grad_norm)
        self.update_target()

        self.buffer = ReplayBuffer(cfg.buffer_size, seed=int(cfg.seed))

        self.state = ControllerState(
            exploration_rate=float(cfg.epsilon_start),
            learning_rate=float(cfg.learning_rate),
        )

        self.recent_losses: Deque[float] = deque(maxlen=100)

    # ---- policy ----

    def action_values(self, state) -> np.ndarray:
        return self.online.predict(state)

    def select_action(self, state, explore: bool = True) -> int:
        q = self.action_values(state)
        if explore and self.rng.random() < self.state.exploration_rate:
            return int(self.rng.integers(self.cfg.action_size))
        # np.argmax returns the first maximal index
        return int(np.argmax(q))

    # ---- replay ----

    def remember(self, transition: Transition) -> None:
        self.buffer.add(transition)

    def can_train(self) -> bool:
        return len(self.buffer) >= self.cfg.batch_size

    def _stack_batch(
        self, batch: List[Transition]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        n = self.cfg.state_size
        for t in batch:
            s = np.asarray(t.state)
            s2 = np.asarray(t.next_state)
            if s.shape != (n,) or s2.shape != (n,):
                raise ShapeMismatchError(
                    f"transition vectors must have shape ({n},), got state={s.shape} next_state={s2.shape}"
                )
            if not 0 <= int(t.action) < self.cfg.action_size:
                raise ValueError(f"transition action out of range: {t.action!r}")

        S = np.stack([np.asarray(t.state, dtype=np.float32) for t in batch])
        A = np.array([int(t.action) for t in batch], dtype=np.int64)
        R = np.array([float(t.reward) for t in batch], dtype=np.float32)
        S2 = np.stack([np.asarray(t.next_state, dtype=np.float32) for t in batch])
        D = np.array([bool(t.terminal) for t in batch], dtype=bool)
        return S, A, R, S2, D

    def compute_targets(self, batch: List[Transition]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build (states, targets) for a batch.

        Targets start as the online prediction; only the taken action's slot
        is replaced, by r (terminal) or r + gamma * max_a' Q_target(s', a').
        """
        S, A, R, S2, D = self._stack_batch(batch)

        Y = self.online.forward(S).copy()
        next_q = np.max(self.target.forward(S2), axis=1)
        y = np.where(D, R, R + self.cfg.gamma * next_q).astype(np.float32)
        Y[np.arange(len(batch)), A] = y
        return S, Y

    # ---- training ----

    def update_target(self) -> None:
        self.target.set_parameters(self.online.get_parameters())

    def _decay_epsilon(self) -> None:
        self.state.exploration_rate = max(
            self.state.exploration_rate * self.cfg.epsilon_decay,
            self.cfg.epsilon_min,
        )

    def train_step(self) -> Optional[float]:
        if not self.can_train():
            return None

        batch = self.buffer.sample(self.cfg.batch_size)
        S, Y = self.compute_targets(batch)
        loss = self.online.train_step(S, Y, self.state.learning_rate)
        self.recent_losses.append(loss)

        self.state.train_steps += 1
        if self.state.train_steps % self.cfg.target_update_every == 0:
            self.update_target()
            logger.debug("target network synced at step %d", self.state.train_steps)

        self._decay_epsilon()
        logger.debug(
            "train step %d loss=%.6f epsilon=%.4f lr=%.6g",
            self.state.train_steps,
            loss,
            self.state.exploration_rate,
            self.state.learning_rate,
        )
        return loss
