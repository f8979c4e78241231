from __future__ import annotations

import argparse
import os
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


def parse_args():
    p = argparse.ArgumentParser()
    p.add_argument("--csv", type=str, required=True, help="*_equity_history.csv written by replay_trades.py")
    p.add_argument("--out", type=str, default="results/equity.png")
    p.add_argument("--title", type=str, default="Continuous learner: equity and drawdown")
    return p.parse_args()


def main():
    args = parse_args()
    df = pd.read_csv(args.csv)

    if "balance" not in df.columns or "drawdown" not in df.columns:
        raise SystemExit("CSV missing required columns: balance / drawdown")

    fig, (ax_eq, ax_dd) = plt.subplots(2, 1, sharex=True, gridspec_kw={"height_ratios": [3, 1]})
    ax_eq.plot(df["trade"], df["balance"], label="Equity")
    ax_eq.set_title(args.title)
    ax_eq.set_ylabel("Balance")
    ax_eq.legend()

    ax_dd.fill_between(df["trade"], -df["drawdown"] * 100.0, 0.0, color="tab:red", alpha=0.4)
    ax_dd.set_xlabel("Trade #")
    ax_dd.set_ylabel("Drawdown %")
    fig.tight_layout()

    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    fig.savefig(args.out, dpi=200)
    print(f"[OK] wrote {args.out}")


if __name__ == "__main__":
    main()
