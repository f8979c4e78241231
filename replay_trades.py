"""
Headless trade replay: feeds closed trades through a ContinuousLearningEngine.

Example:
  python replay_trades.py --trades trades.csv --out_dir results
  python replay_trades.py --synthetic 500 --seed 7

Trades CSV columns:
  action (hold/buy/sell or 0/1/2), profit, optional timestamp,
  state_0 .. state_{n-1}, next_state_0 .. next_state_{n-1}

Outputs:
  results/{RUN}_metrics.csv
  results/{RUN}_equity_history.csv
  results/{RUN}_run_config.json
  results/{RUN}_engine.npz
"""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Iterator

import numpy as np
import pandas as pd

import rllearner as rl


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser()
    p.add_argument("--trades", type=str, default="")
    p.add_argument("--synthetic", type=int, default=0)
    p.add_argument("--resume", type=str, default="")
    p.add_argument("--seed", type=int, default=42)

    # engine
    p.add_argument("--state_size", type=int, default=15)
    p.add_argument("--gamma", type=float, default=0.95)
    p.add_argument("--learning_rate", type=float, default=1e-3)
    p.add_argument("--buffer_size", type=int, default=10_000)
    p.add_argument("--batch_size", type=int, default=32)
    p.add_argument("--target_update_every", type=int, default=100)

    # exploration
    p.add_argument("--epsilon_start", type=float, default=1.0)
    p.add_argument("--epsilon_decay", type=float, default=0.995)
    p.add_argument("--epsilon_min", type=float, default=0.01)

    # performance
    p.add_argument("--initial_balance", type=float, default=10_000.0)

    p.add_argument("--out_dir", type=str, default="results")
    return p.parse_args()


def iter_csv_trades(path: str, state_size: int) -> Iterator[rl.TradeOutcome]:
    df = pd.read_csv(path)
    s_cols = [f"state_{i}" for i in range(state_size)]
    n_cols = [f"next_state_{i}" for i in range(state_size)]
    missing = [c for c in ["action", "profit", *s_cols, *n_cols] if c not in df.columns]
    if missing:
        raise SystemExit(f"{path}: missing columns {missing}")

    has_ts = "timestamp" in df.columns
    for row in df.itertuples(index=False):
        r = row._asdict()
        action = r["action"]
        yield rl.TradeOutcome(
            state_before=[r[c] for c in s_cols],
            action=action if isinstance(action, str) else int(action),
            profit=float(r["profit"]),
            state_after=[r[c] for c in n_cols],
            timestamp=float(r["timestamp"]) if has_ts and not pd.isna(r["timestamp"]) else None,
        )


def iter_synthetic_trades(engine: rl.ContinuousLearningEngine, n: int, seed: int) -> Iterator[rl.TradeOutcome]:
    """Random market states; BUY pays when feature 0 is positive, SELL when negative."""
    rng = np.random.default_rng(int(seed))
    size = engine.cfg.state_size
    for i in range(int(n)):
        state = rng.standard_normal(size).astype(np.float32)
        action = rl.Action(engine.predict(state))
        edge = float(state[0]) * 40.0
        if action == rl.Action.BUY:
            profit = edge + rng.normal(0.0, 20.0)
        elif action == rl.Action.SELL:
            profit = -edge + rng.normal(0.0, 20.0)
        else:
            profit = rng.normal(0.0, 2.0)
        next_state = (state + rng.normal(0.0, 0.1, size)).astype(np.float32)
        yield rl.TradeOutcome(state, action, float(profit), next_state, timestamp=float(i))


def main() -> None:
    args = parse_args()
    rl.set_global_seed(args.seed)

    if not args.trades and args.synthetic <= 0:
        raise SystemExit("Provide --trades CSV or --synthetic N.")
    os.makedirs(args.out_dir, exist_ok=True)

    engine_cfg = rl.EngineConfig(
        state_size=args.state_size,
        gamma=args.gamma,
        learning_rate=args.learning_rate,
        buffer_size=args.buffer_size,
        batch_size=args.batch_size,
        target_update_every=args.target_update_every,
        epsilon_start=args.epsilon_start,
        epsilon_decay=args.epsilon_decay,
        epsilon_min=args.epsilon_min,
        seed=args.seed,
    )
    perf_cfg = rl.PerformanceConfig(initial_balance=args.initial_balance)
    engine = rl.ContinuousLearningEngine(engine_cfg, perf_cfg)

    if args.resume:
        try:
            engine.load(args.resume)
        except rl.PersistenceError as e:
            raise SystemExit(f"[WARN] cannot resume from {args.resume}: {e}")
        print(f"[OK] resumed from {args.resume} at step {engine.train_steps}")

    trades = iter_csv_trades(args.trades, args.state_size) if args.trades else iter_synthetic_trades(engine, args.synthetic, args.seed)

    n_seen = 0
    for outcome in trades:
        try:
            engine.learn_from_trade(outcome)
        except rl.ShapeMismatchError as e:
            raise SystemExit(f"trade #{n_seen + 1}: {e}")
        n_seen += 1

    run_tag = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")

    metrics = engine.get_metrics().to_dict()
    stats = engine.training_stats()
    metrics_path = os.path.join(args.out_dir, f"{run_tag}_metrics.csv")
    pd.DataFrame([{**metrics, **stats}]).to_csv(metrics_path, index=False)

    equity_path = os.path.join(args.out_dir, f"{run_tag}_equity_history.csv")
    engine.tracker.history_frame().to_csv(equity_path, index=False)

    cfg_path = os.path.join(args.out_dir, f"{run_tag}_run_config.json")
    with open(cfg_path, "w", encoding="utf-8") as f:
        json.dump({"engine": asdict(engine_cfg), "performance": asdict(perf_cfg), "trades": n_seen}, f, ensure_ascii=False, indent=2)

    ckpt_path = os.path.join(args.out_dir, f"{run_tag}_engine.npz")
    engine.save(ckpt_path)

    print(
        f"[OK] {n_seen} trades: win_rate={metrics['win_rate']:.3f} sharpe={metrics['sharpe_ratio']:.3f} "
        f"mdd={metrics['max_drawdown']:.3f} steps={stats['train_steps']} eps={stats['exploration_rate']:.3f}"
    )
    print(f"[DONE] metrics -> {metrics_path}, checkpoint -> {ckpt_path}")


if __name__ == "__main__":
    main()
