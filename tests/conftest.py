"""
Shared fixtures for the learning engine tests.
"""

import numpy as np
import pytest

from rllearner import Action, EngineConfig, Transition


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def small_cfg():
    """Default topology, tiny batch and sync interval so tests train quickly."""
    return EngineConfig(batch_size=4, target_update_every=3, buffer_size=64, seed=7)


@pytest.fixture
def make_transition(rng):
    def _make(action=Action.BUY, reward=0.05, terminal=True, state_size=15):
        return Transition(
            state=rng.standard_normal(state_size).astype(np.float32),
            action=int(action),
            reward=float(reward),
            next_state=rng.standard_normal(state_size).astype(np.float32),
            terminal=terminal,
        )

    return _make
