"""
Game driver: play full games between two agents and tally results.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional

import numpy as np

from .errors import IllegalMoveError
from .game_basics import O, X, GameState, other


def play_game(
    x_agent,
    o_agent,
    start: Optional[GameState] = None,
    render: Optional[Callable[[GameState], None]] = None,
) -> GameState:
    """Alternate moves until the game ends; returns the final state."""
    state = start or GameState.initial()
    agents = {X: x_agent, O: o_agent}
    if render is not None:
        render(state)
    while not state.is_terminal():
        move = agents[state.to_move].move(state)
        if not state.is_legal(move):
            raise IllegalMoveError(move, state)
        state = state.apply(move)
        if render is not None:
            render(state)
    return state


def evaluate(agent, opponent, games: int = 100, marker: int = X) -> Dict[str, float]:
    """Play ``games`` games with ``agent`` as ``marker`` and count wins/draws/losses."""
    outcomes = []
    for _ in range(games):
        if marker == X:
            final = play_game(agent, opponent)
        else:
            final = play_game(opponent, agent)
        w = final.winner()
        outcomes.append(1 if w == marker else (-1 if w == other(marker) else 0))
    arr = np.asarray(outcomes, dtype=int)
    return {
        "games": games,
        "wins": int((arr == 1).sum()),
        "draws": int((arr == 0).sum()),
        "losses": int((arr == -1).sum()),
        "win_rate": float(np.mean(arr == 1)) if games else 0.0,
    }
