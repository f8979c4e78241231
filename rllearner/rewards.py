from __future__ import annotations

import math

# losses weigh more than equal-sized gains
LOSS_MULTIPLIER = 1.5
LARGE_WIN_THRESHOLD = 100.0
LARGE_WIN_BONUS = 50.0
REWARD_NORMALIZER = 1000.0


def shape_reward(profit: float) -> float:
    """
    Map a realized trade profit (account currency) to a training reward.

      reward = profit
      reward *= 1.5          if profit < 0
      reward += 50           if profit > 100
      reward /= 1000
    """
    p = float(profit)
    if not math.isfinite(p):
        raise ValueError(f"profit must be finite, got {profit!r}")

    reward = p
    if p < 0:
        reward *= LOSS_MULTIPLIER
    if p > LARGE_WIN_THRESHOLD:
        reward += LARGE_WIN_BONUS
    return reward / REWARD_NORMALIZER
