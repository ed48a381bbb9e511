"""
Value iteration over the enumerated Tic-Tac-Toe state space.
Notes:
- Each sweep is synchronous: the new values are computed entirely from the
  previous snapshot and returned as a fresh dict.
- There is no convergence test; `k` is a fixed sweep budget. With discount < 1
  the Bellman operator is a contraction, so more sweeps only get closer.
- Terminal states are pinned to 0 and get no policy entry.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .game_basics import X, GameState, Move, generate_all_valid_states
from .mdp import TicTacToeMDP
from .policy import Policy
from .selection import best_move


class ValueIterationSolver:
    def __init__(
        self,
        mdp: Optional[TicTacToeMDP] = None,
        discount: float = 0.9,
        k: int = 10,
        marker: int = X,
    ):
        if not 0.0 <= discount <= 1.0:
            raise ValueError(f"Discount must be in [0,1]: {discount}")
        if k < 0:
            raise ValueError(f"Sweep budget must be non-negative: {k}")
        self.mdp = mdp or TicTacToeMDP(marker=marker)
        self.discount = discount
        self.k = k
        self.marker = marker
        self.states = generate_all_valid_states(marker)
        self._values: Dict[GameState, float] = {s: 0.0 for s in self.states}
        self.sweeps_done = 0
        self.policy: Optional[Policy] = None

    @property
    def values(self) -> Mapping[GameState, float]:
        return MappingProxyType(self._values)

    def _sweep(self, values: Mapping[GameState, float]) -> Dict[GameState, float]:
        new_values: Dict[GameState, float] = {}
        for state in self.states:
            if state.is_terminal():
                new_values[state] = 0.0
                continue
            _, v = best_move(self.mdp, state, values, self.discount)
            new_values[state] = v
        return new_values

    def iterate(self, k: Optional[int] = None) -> Mapping[GameState, float]:
        """Run exactly ``k`` sweeps (default: ``self.k``)."""
        n = self.k if k is None else k
        if n < 0:
            raise ValueError(f"Sweep budget must be non-negative: {n}")
        values: Mapping[GameState, float] = self._values
        for i in range(n):
            new_values = self._sweep(values)
            delta = max((abs(new_values[s] - values[s]) for s in self.states), default=0.0)
            logging.debug("value iteration sweep %d: max change %.6f", i + 1, delta)
            values = new_values
        self._values = dict(values)
        self.sweeps_done += n
        return self.values

    def extract_policy(self) -> Policy:
        moves: Dict[GameState, Move] = {}
        for state in self.states:
            if state.is_terminal():
                continue
            mv, _ = best_move(self.mdp, state, self._values, self.discount)
            moves[state] = mv
        return Policy(moves, marker=self.marker)

    def train(self) -> Policy:
        self.iterate()
        self.policy = self.extract_policy()
        logging.info("Value iteration: %d sweeps, policy covers %d states", self.sweeps_done, len(self.policy))
        return self.policy
