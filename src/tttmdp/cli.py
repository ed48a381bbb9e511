from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .agents import Agent, HumanAgent, RandomAgent
from .errors import TTTError
from .game_basics import X, GameState, deserialize_board, is_valid_state
from .play import evaluate, play_game
from .policy import Policy
from .training import SOLVERS, TrainArgs, compare_value_and_policy_iteration, run_train, train_policy


def _add_solver_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--discount", type=float, default=0.9, help="Discount factor gamma (default: 0.9)")
    p.add_argument("--k", type=int, default=10, help="Value iteration sweeps (default: 10)")
    p.add_argument("--delta", type=float, default=0.1, help="Policy evaluation tolerance (default: 0.1)")
    p.add_argument("--max-iterations", type=int, default=1000,
                   help="Bound on policy iteration alternations (default: 1000)")
    p.add_argument("--alpha", type=float, default=0.1, help="Q-learning rate (default: 0.1)")
    p.add_argument("--epsilon", type=float, default=0.1, help="Exploration probability (default: 0.1)")
    p.add_argument("--episodes", type=int, default=10000, help="Q-learning episodes (default: 10000)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ttt-mdp", description="Tic-tac-toe MDP solvers")
    sub = p.add_subparsers(dest="cmd")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument(
        "--info",
        action="store_true",
        help="Print environment and dependency info and exit",
    )
    p.add_argument("--seed", type=int, default=None, help="Seed for solver and opponent randomness")
    p.add_argument(
        "--deterministic",
        action="store_true",
        help="Enable deterministic mode (sets PYTHONHASHSEED and single-threaded BLAS)",
    )

    p_train = sub.add_parser("train", help="Train a solver and write its policy and manifest")
    p_train.add_argument("--solver", choices=SOLVERS, required=True)
    p_train.add_argument("--out", type=Path, default=None,
                         help="Output directory (default: $TTT_POLICY_DIR or <repo>/policies)")
    _add_solver_args(p_train)
    p_train.add_argument("--eval-games", type=int, default=200,
                         help="Games against a random opponent after training (0 to skip)")
    p_train.add_argument(
        "--tracking",
        choices=["none", "mlflow"],
        default="none",
        help="Experiment tracking backend",
    )
    p_train.add_argument(
        "--log-dir",
        type=Path,
        default=Path("runs"),
        help="Directory for tracking logs/artifacts (for mlflow local backend)",
    )

    p_eval = sub.add_parser("evaluate", help="Play a saved policy against a random opponent")
    p_eval.add_argument("--policy", type=Path, required=True, help="Policy JSON written by 'train'")
    p_eval.add_argument("--games", type=int, default=200)

    p_cmp = sub.add_parser("compare", help="Check value iteration and policy iteration agree")
    p_cmp.add_argument("--discount", type=float, default=0.9)
    p_cmp.add_argument("--k", type=int, default=50)
    p_cmp.add_argument("--delta", type=float, default=1e-6)

    p_play = sub.add_parser("play", help="Play interactively against a trained agent (agent is X)")
    src = p_play.add_mutually_exclusive_group(required=True)
    src.add_argument("--solver", choices=SOLVERS)
    src.add_argument("--policy", type=Path)
    _add_solver_args(p_play)

    p_move = sub.add_parser("move", help="Show a saved policy's move for a board (9 digits, 0=empty,1=X,2=O)")
    p_move.add_argument("--policy", type=Path, required=True)
    p_move.add_argument("--board", required=True, help="Board string, e.g., 100020000")

    return p


def _set_deterministic_env(seed: Optional[int]) -> None:
    import os

    if seed is not None:
        os.environ.setdefault("PYTHONHASHSEED", str(seed))
    for var in ("MKL_NUM_THREADS", "OPENBLAS_NUM_THREADS", "NUMEXPR_NUM_THREADS", "OMP_NUM_THREADS"):
        os.environ.setdefault(var, "1")


def _print_info() -> None:
    import platform

    import numpy as np

    print(f"python={sys.version.split()[0]} platform={platform.platform()}")
    print(f"numpy={np.__version__}")
    try:
        import mlflow  # type: ignore

        print(f"mlflow={getattr(mlflow, '__version__', '?')}")
    except ImportError:
        print("mlflow=<not installed>")


def _train_args(ns: argparse.Namespace, solver: str, argv: list[str] | None) -> TrainArgs:
    return TrainArgs(
        solver=solver,
        out=getattr(ns, "out", None),
        discount=ns.discount,
        k=ns.k,
        delta=ns.delta,
        max_iterations=ns.max_iterations,
        alpha=ns.alpha,
        epsilon=ns.epsilon,
        episodes=ns.episodes,
        eval_games=getattr(ns, "eval_games", 0),
        seed=ns.seed,
        tracking=getattr(ns, "tracking", "none"),
        log_dir=getattr(ns, "log_dir", Path("runs")),
        verbose=ns.verbose,
        cli_argv=list(argv) if argv is not None else sys.argv[1:],
    )


def _parse_board(raw: str) -> Optional[GameState]:
    raw = raw.strip()
    if len(raw) != 9 or any(c not in "012" for c in raw):
        logging.error("Invalid board string. Must be 9 chars of 0/1/2.")
        return None
    b = deserialize_board(raw)
    if not is_valid_state(b):
        logging.error("Board is not a valid reachable state.")
        return None
    return GameState.from_board(b)


def _run(ns: argparse.Namespace, argv: list[str] | None) -> int:
    if ns.cmd == "train":
        for name in ("discount", "epsilon"):
            v = getattr(ns, name)
            if v < 0.0 or v > 1.0:
                logging.error("%s out of range [0,1]: %s", name, v)
                return 2
        out = run_train(_train_args(ns, ns.solver, argv))
        logging.info("Wrote policy to: %s", out)
        return 0

    if ns.cmd == "evaluate":
        policy = Policy.load(ns.policy)
        res = evaluate(Agent(policy), RandomAgent(ns.seed), games=ns.games, marker=policy.marker)
        logging.info(
            "games=%d wins=%d draws=%d losses=%d win_rate=%.3f",
            res["games"], res["wins"], res["draws"], res["losses"], res["win_rate"],
        )
        return 0

    if ns.cmd == "compare":
        res = compare_value_and_policy_iteration(
            discount=ns.discount, k=ns.k, delta=ns.delta, seed=ns.seed
        )
        logging.info(
            "states=%d max_value_difference=%.3g differing_moves=%d strict_disagreements=%d pi_iterations=%d",
            res["states"],
            res["max_value_difference"],
            res["differing_moves"],
            res["strict_disagreements"],
            res["pi_iterations"],
        )
        return 0 if res["strict_disagreements"] == 0 else 1

    if ns.cmd == "play":
        if ns.policy is not None:
            policy = Policy.load(ns.policy)
        else:
            policy, _ = train_policy(_train_args(ns, ns.solver, argv))
        if policy.marker != X:
            logging.error("Interactive play expects a policy for X")
            return 2
        final = play_game(Agent(policy), HumanAgent(show_board=False), render=lambda s: print(s.render() + "\n"))
        w = final.winner()
        print("Draw!" if w == 0 else ("Agent wins!" if w == X else "You win!"))
        return 0

    if ns.cmd == "move":
        policy = Policy.load(ns.policy)
        state = _parse_board(ns.board)
        if state is None:
            return 2
        mv = policy.move_for(state)
        logging.info("move=%s cell=%d", mv, mv.cell)
        return 0

    return -1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if getattr(ns, "verbose", False) else logging.INFO,
                        format="[%(levelname)s] %(message)s")

    # Early exits
    if getattr(ns, "version", False):
        try:
            from importlib.metadata import version as _ver

            print(_ver("tttmdp"))
        except ImportError:
            print("unknown")
        return 0
    if getattr(ns, "info", False):
        _print_info()
        return 0

    if getattr(ns, "deterministic", False):
        _set_deterministic_env(getattr(ns, "seed", None))

    try:
        rc = _run(ns, argv)
    except (TTTError, ValueError, OSError) as e:
        logging.error("%s: %s", type(e).__name__, e)
        return 2
    if rc == -1:
        parser.print_help()
        return 0
    return rc


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
