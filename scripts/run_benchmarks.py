#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import math
import statistics as stats
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from tttmdp.agents import Agent, RandomAgent
from tttmdp.play import evaluate
from tttmdp.tracking import tracking_run
from tttmdp.training import SOLVERS, TrainArgs, train_policy


def ci95(values: List[float]) -> Tuple[float, float]:
    if not values:
        return (float("nan"), float("nan"))
    m = stats.fmean(values)
    s = stats.pstdev(values) if len(values) > 1 else 0.0
    half = 1.96 * (s / math.sqrt(len(values)))
    return m, half


@dataclass
class Config:
    seeds: int = 5
    episodes: int = 10000
    eval_games: int = 200
    tracking: str = "none"  # or "mlflow"
    log_dir: Path = Path("runs")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Time each solver across seeds and report win rates")
    ap.add_argument("--seeds", type=int, default=Config.seeds)
    ap.add_argument("--episodes", type=int, default=Config.episodes)
    ap.add_argument("--eval-games", type=int, default=Config.eval_games)
    ap.add_argument("--tracking", choices=["none", "mlflow"], default=Config.tracking)
    ns = ap.parse_args(argv)
    cfg = Config(seeds=ns.seeds, episodes=ns.episodes, eval_games=ns.eval_games, tracking=ns.tracking)
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    with tracking_run(cfg.tracking, run_name="benchmarks", log_dir=cfg.log_dir) as tracker:
        tracker.log_params({"seeds": cfg.seeds, "episodes": cfg.episodes, "eval_games": cfg.eval_games})
        metrics: Dict[str, float] = {}
        for solver in SOLVERS:
            times: List[float] = []
            win_rates: List[float] = []
            for s in range(cfg.seeds):
                policy, st = train_policy(TrainArgs(solver=solver, episodes=cfg.episodes, seed=s))
                times.append(st["seconds"])
                res = evaluate(Agent(policy), RandomAgent(1000 + s), games=cfg.eval_games)
                win_rates.append(res["win_rate"])
            m_t, h_t = ci95(times)
            m_w, h_w = ci95(win_rates)
            logging.info(
                "%-10s train=%.3fs ± %.3fs  win_rate=%.3f ± %.3f (95%% CI, N=%d)",
                solver, m_t, h_t, m_w, h_w, cfg.seeds,
            )
            metrics.update({
                f"{solver}_train_mean_s": m_t,
                f"{solver}_train_ci95_half_s": h_t,
                f"{solver}_win_rate_mean": m_w,
            })
        tracker.log_metrics(metrics)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
