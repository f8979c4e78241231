"""
DQNAgent: target correction, target sync cadence, exploration decay,
batch shape failures and argmax tie-breaking.
"""

from dataclasses import replace

import numpy as np
import pytest

from rllearner import Action, DQNAgent, ShapeMismatchError, Transition


def _params_equal(a, b) -> bool:
    return all(np.array_equal(x, y) for x, y in zip(a.get_parameters(), b.get_parameters()))


def _fill(agent, make_transition, n):
    for i in range(n):
        agent.remember(make_transition(action=i % 3, reward=0.01 * i))


class TestTargets:
    def test_terminal_target_replaces_only_taken_action(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        r = 0.2
        batch = [make_transition(action=Action.BUY, reward=r) for _ in range(5)]

        S, Y = agent.compute_targets(batch)
        Q = agent.online.forward(S)

        np.testing.assert_allclose(Y[:, Action.BUY], np.float32(r))
        np.testing.assert_array_equal(Y[:, Action.HOLD], Q[:, Action.HOLD])
        np.testing.assert_array_equal(Y[:, Action.SELL], Q[:, Action.SELL])

    def test_non_terminal_target_uses_target_network(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        # make target differ from online
        agent.online.train_step(np.ones((1, 15), dtype=np.float32), np.full((1, 3), 5.0, dtype=np.float32), 1e-2)
        batch = [make_transition(action=Action.SELL, reward=0.1, terminal=False) for _ in range(3)]

        S, Y = agent.compute_targets(batch)
        S2 = np.stack([t.next_state for t in batch])
        expected = 0.1 + small_cfg.gamma * np.max(agent.target.forward(S2), axis=1)

        np.testing.assert_allclose(Y[:, Action.SELL], expected, rtol=1e-5)
        Q = agent.online.forward(S)
        np.testing.assert_array_equal(Y[:, :2], Q[:, :2])

    def test_mixed_actions(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        batch = [make_transition(action=a, reward=-0.075) for a in (0, 1, 2, 1)]
        S, Y = agent.compute_targets(batch)
        Q = agent.online.forward(S)
        for i, t in enumerate(batch):
            for a in range(3):
                if a == t.action:
                    assert Y[i, a] == pytest.approx(-0.075)
                else:
                    assert Y[i, a] == Q[i, a]


class TestTraining:
    def test_no_training_below_batch_size(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        _fill(agent, make_transition, small_cfg.batch_size - 1)
        assert agent.train_step() is None
        assert agent.state.train_steps == 0
        assert agent.state.exploration_rate == small_cfg.epsilon_start

    def test_train_step_updates_counters(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        _fill(agent, make_transition, small_cfg.batch_size)
        loss = agent.train_step()
        assert isinstance(loss, float)
        assert agent.state.train_steps == 1
        assert agent.state.exploration_rate == pytest.approx(small_cfg.epsilon_start * small_cfg.epsilon_decay)
        assert list(agent.recent_losses) == [loss]

    def test_target_sync_cadence(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        assert _params_equal(agent.online, agent.target)
        _fill(agent, make_transition, 8)

        every = small_cfg.target_update_every
        for step in range(1, 2 * every + 2):
            agent.train_step()
            if step % every == 0:
                assert _params_equal(agent.online, agent.target), step
            else:
                assert not _params_equal(agent.online, agent.target), step

    def test_target_is_a_copy_not_a_reference(self, small_cfg, make_transition):
        agent = DQNAgent(replace(small_cfg, target_update_every=1))
        _fill(agent, make_transition, 8)
        agent.train_step()
        assert _params_equal(agent.online, agent.target)
        snapshot = agent.target.get_parameters()
        agent.online.train_step(np.ones((1, 15), dtype=np.float32), np.full((1, 3), 3.0, dtype=np.float32), 1e-2)
        for a, b in zip(snapshot, agent.target.get_parameters()):
            np.testing.assert_array_equal(a, b)

    def test_exploration_never_below_floor(self, small_cfg, make_transition):
        agent = DQNAgent(replace(small_cfg, epsilon_decay=0.8))
        _fill(agent, make_transition, 8)
        for _ in range(60):
            agent.train_step()
            assert agent.state.exploration_rate >= small_cfg.epsilon_min
        assert agent.state.exploration_rate == pytest.approx(small_cfg.epsilon_min)

    def test_learning_rate_untouched_by_training(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        _fill(agent, make_transition, 8)
        for _ in range(5):
            agent.train_step()
        assert agent.state.learning_rate == small_cfg.learning_rate

    def test_malformed_transition_fails_whole_batch(self, make_transition, small_cfg):
        agent = DQNAgent(replace(small_cfg, batch_size=1))
        bad = Transition(
            state=np.zeros(14, dtype=np.float32),
            action=1,
            reward=0.1,
            next_state=np.zeros(15, dtype=np.float32),
        )
        agent.remember(bad)
        before = agent.online.get_parameters()

        with pytest.raises(ShapeMismatchError):
            agent.train_step()

        assert agent.state.train_steps == 0
        for a, b in zip(before, agent.online.get_parameters()):
            np.testing.assert_array_equal(a, b)

    def test_malformed_next_state_in_batch(self, small_cfg, make_transition):
        agent = DQNAgent(small_cfg)
        batch = [make_transition() for _ in range(3)]
        batch.append(Transition(np.zeros(15), 0, 0.0, np.zeros(16)))
        with pytest.raises(ShapeMismatchError):
            agent.compute_targets(batch)


class TestActionSelection:
    def _set_head_bias(self, agent, bias):
        params = agent.online.get_parameters()
        params[-2][:] = 0.0
        params[-1][:] = np.asarray(bias, dtype=np.float32)
        agent.online.set_parameters(params)

    @pytest.mark.parametrize(
        "bias, expected",
        [
            ([0.0, 0.0, 0.0], 0),
            ([0.0, 2.0, 2.0], 1),
            ([1.0, 1.0, 0.0], 0),
            ([0.0, 0.0, 3.0], 2),
        ],
    )
    def test_argmax_tie_break_lowest_index(self, small_cfg, rng, bias, expected):
        agent = DQNAgent(small_cfg)
        self._set_head_bias(agent, bias)
        for _ in range(10):
            state = rng.standard_normal(15)
            assert agent.select_action(state, explore=False) == expected

    def test_zero_epsilon_is_greedy(self, small_cfg, rng):
        agent = DQNAgent(small_cfg)
        agent.state.exploration_rate = 0.0
        self._set_head_bias(agent, [0.0, 0.0, 1.0])
        assert all(agent.select_action(rng.standard_normal(15)) == 2 for _ in range(20))

    def test_full_exploration_covers_all_actions(self, small_cfg, rng):
        agent = DQNAgent(small_cfg)
        agent.state.exploration_rate = 1.0
        seen = {agent.select_action(rng.standard_normal(15)) for _ in range(200)}
        assert seen == {0, 1, 2}

    def test_rejects_wrong_state_length(self, small_cfg):
        agent = DQNAgent(small_cfg)
        with pytest.raises(ShapeMismatchError):
            agent.select_action(np.zeros(10))
