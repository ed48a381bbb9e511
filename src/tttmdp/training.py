"""
Training runs: build a solver from arguments, train it, evaluate the resulting
policy against a random opponent, and write the policy plus a manifest.
"""
from __future__ import annotations

import hashlib
import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from .agents import Agent, RandomAgent
from .environment import TicTacToeEnvironment
from .mdp import Rewards, TicTacToeMDP
from .paths import git_metadata, policies_dir
from .play import evaluate
from .policy import Policy
from .policy_iteration import PolicyIterationSolver
from .q_learning import QLearningSolver
from .selection import expected_return
from .tracking import flatten_stats, tracking_run
from .value_iteration import ValueIterationSolver

SOLVERS = ("value", "policy", "qlearning")


@dataclass
class TrainArgs:
    solver: str = "value"
    out: Optional[Path] = None
    discount: float = 0.9
    k: int = 10
    delta: float = 0.1
    max_iterations: int = 1000
    alpha: float = 0.1
    epsilon: float = 0.1
    episodes: int = 10000
    eval_games: int = 200
    seed: Optional[int] = None
    rewards: Rewards = field(default_factory=Rewards)
    tracking: str = "none"  # or "mlflow"
    log_dir: Path = Path("runs")
    verbose: bool = False
    cli_argv: List[str] | None = None


def build_solver(args: TrainArgs):
    if args.solver not in SOLVERS:
        raise ValueError(f"Unknown solver: {args.solver} (choose from {', '.join(SOLVERS)})")
    mdp = TicTacToeMDP(args.rewards)
    if args.solver == "value":
        return ValueIterationSolver(mdp, discount=args.discount, k=args.k)
    if args.solver == "policy":
        return PolicyIterationSolver(
            mdp,
            discount=args.discount,
            delta=args.delta,
            max_iterations=args.max_iterations,
            seed=args.seed,
        )
    env = TicTacToeEnvironment(RandomAgent(args.seed), mdp=mdp)
    return QLearningSolver(
        env,
        alpha=args.alpha,
        discount=args.discount,
        epsilon=args.epsilon,
        num_episodes=args.episodes,
        seed=args.seed,
    )


def solver_stats(solver) -> Dict[str, Any]:
    if isinstance(solver, ValueIterationSolver):
        return {"sweeps": solver.sweeps_done}
    if isinstance(solver, PolicyIterationSolver):
        return {"iterations": solver.iterations, "evaluation_sweeps": solver.evaluation_sweeps}
    return {
        "episodes": solver.episodes_done,
        "steps": solver.steps_done,
        "q_entries": len(solver.q_table),
    }


def train_policy(args: TrainArgs) -> tuple[Policy, Dict[str, Any]]:
    solver = build_solver(args)
    t0 = time.perf_counter()
    policy = solver.train()
    stats = solver_stats(solver)
    stats["seconds"] = time.perf_counter() - t0
    stats["policy_states"] = len(policy)
    return policy, stats


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open('rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            h.update(chunk)
    return h.hexdigest()


def run_train(args: TrainArgs) -> Path:
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] %(message)s")
    out = Path(args.out) if args.out is not None else policies_dir()
    out.mkdir(parents=True, exist_ok=True)

    with tracking_run(args.tracking, run_name=f"train_{args.solver}", log_dir=args.log_dir) as tracker:
        logging.info("Training %s solver…", args.solver)
        policy, stats = train_policy(args)
        logging.info("Trained in %.2fs", stats["seconds"])

        evaluation = None
        if args.eval_games > 0:
            opp_seed = None if args.seed is None else args.seed + 1
            evaluation = evaluate(Agent(policy), RandomAgent(opp_seed), games=args.eval_games)
            logging.info(
                "Against random opponent: wins=%d draws=%d losses=%d",
                evaluation["wins"], evaluation["draws"], evaluation["losses"],
            )

        policy_path = policy.save(out / f"{args.solver}_policy.json")
        params = {k: v for k, v in asdict(args).items() if k not in ("out", "log_dir", "cli_argv", "verbose")}
        manifest = {
            "created_at": datetime.now(timezone.utc).isoformat(),
            "solver": args.solver,
            "args": json.loads(json.dumps(params, default=str)),
            "stats": stats,
            "evaluation": evaluation,
            "cli_argv": args.cli_argv,
            **git_metadata(),
            "python": {
                "python_version": sys.version.split(" ")[0],
                "packages": {"numpy": np.__version__},
            },
            "files": {"policy": str(policy_path)},
            "checksums": {"policy": _sha256_file(policy_path)},
        }
        manifest_path = out / "manifest.json"
        manifest_path.write_text(json.dumps(manifest, indent=2))
        logging.info("Wrote %s and manifest.json", policy_path.name)

        tracker.log_params({
            "solver": args.solver,
            "discount": args.discount,
            "k": args.k,
            "delta": args.delta,
            "alpha": args.alpha,
            "epsilon": args.epsilon,
            "episodes": args.episodes,
            "seed": args.seed,
        })
        tracker.log_metrics(flatten_stats({"train": stats, "eval": evaluation or {}}))
        tracker.log_artifact(policy_path)
        tracker.log_artifact(manifest_path)
    return out


def compare_value_and_policy_iteration(
    discount: float = 0.9,
    k: int = 50,
    delta: float = 1e-6,
    seed: Optional[int] = None,
    tol: float = 1e-6,
) -> Dict[str, Any]:
    """Train both model-based solvers and report how far apart their results are.

    Moves that differ are only counted as disagreements when their lookahead
    values differ by more than ``tol`` under the value-iteration values.
    """
    mdp = TicTacToeMDP()
    vi = ValueIterationSolver(mdp, discount=discount, k=k)
    pi = PolicyIterationSolver(mdp, discount=discount, delta=delta, seed=seed)
    vi_policy = vi.train()
    pi_policy = pi.train()
    max_diff = max(abs(vi.values[s] - pi.values[s]) for s in vi.states)
    differing = 0
    disagreements = 0
    for state in vi_policy.states():
        a, b = vi_policy.move_for(state), pi_policy.move_for(state)
        if a == b:
            continue
        differing += 1
        va = expected_return(mdp, state, a, vi.values, discount)
        vb = expected_return(mdp, state, b, vi.values, discount)
        if abs(va - vb) > tol:
            disagreements += 1
    return {
        "states": len(vi_policy),
        "max_value_difference": max_diff,
        "differing_moves": differing,
        "strict_disagreements": disagreements,
        "pi_iterations": pi.iterations,
    }
