"""
Move selection helpers shared by the solvers and agents.

`choose_move` is the single place where a random legal move is substituted:
initial random policies, epsilon-greedy exploration, greedy fallbacks and the
random opponent all go through it.
"""
from __future__ import annotations

from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidStateError
from .game_basics import GameState, Move
from .mdp import TicTacToeMDP


def choose_move(
    state: GameState,
    rng: np.random.Generator,
    preferred: Optional[Move] = None,
    among: Optional[Sequence[Move]] = None,
) -> Move:
    """Return ``preferred`` if it is legal in ``state``, else a uniform-random legal move.

    ``among`` narrows the random pick to those of its moves that are legal; when
    none of them are, every legal move is a candidate.
    """
    moves = state.legal_actions()
    if not moves:
        raise InvalidStateError(f"No legal moves in state {state.key()}")
    if preferred is not None and preferred in moves:
        return preferred
    pool = [m for m in among if m in moves] if among else []
    if not pool:
        pool = moves
    return pool[int(rng.integers(len(pool)))]


def expected_return(
    mdp: TicTacToeMDP,
    state: GameState,
    move: Move,
    values: Mapping[GameState, float],
    discount: float,
) -> float:
    """One-step lookahead: sum of p * (r + discount * V(s')) over the move's transitions."""
    total = 0.0
    for t in mdp.transitions(state, move):
        total += t.probability * (t.reward + discount * values[t.next_state])
    return total


def best_move(
    mdp: TicTacToeMDP,
    state: GameState,
    values: Mapping[GameState, float],
    discount: float,
) -> Tuple[Move, float]:
    """Argmax of the lookahead over legal moves; the first maximizer wins ties."""
    moves = state.legal_actions()
    if not moves:
        raise InvalidStateError(f"No legal moves in state {state.key()}")
    best: Optional[Move] = None
    best_value = float('-inf')
    for mv in moves:
        v = expected_return(mdp, state, mv, values, discount)
        if v > best_value:
            best_value = v
            best = mv
    assert best is not None
    return best, best_value
