"""
Policy iteration: alternate full policy evaluation and greedy improvement until
the policy stops changing.
Notes:
- Evaluation is fixed-point iteration with synchronous sweeps (not a linear
  solve); it stops once no state's value moves by more than `delta`.
- Improvement switches a state's move only when the first maximizer of the
  one-step lookahead is strictly better than the current move; a tied current
  move is kept. Every change then strictly raises the policy's value, and there
  are finitely many deterministic policies, so the alternation terminates.
- The number of alternations is finite for a finite MDP; `max_iterations`
  turns a runaway loop into a ConvergenceError.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

import numpy as np

from .errors import ConvergenceError
from .game_basics import X, GameState, Move, generate_all_valid_states
from .mdp import TicTacToeMDP
from .policy import Policy
from .selection import best_move, choose_move, expected_return


class PolicyIterationSolver:
    def __init__(
        self,
        mdp: Optional[TicTacToeMDP] = None,
        discount: float = 0.9,
        delta: float = 0.1,
        max_iterations: int = 1000,
        seed: Optional[int] = None,
        marker: int = X,
    ):
        if not 0.0 <= discount <= 1.0:
            raise ValueError(f"Discount must be in [0,1]: {discount}")
        if delta < 0:
            raise ValueError(f"delta must be non-negative: {delta}")
        self.mdp = mdp or TicTacToeMDP(marker=marker)
        self.discount = discount
        self.delta = delta
        self.max_iterations = max_iterations
        self.marker = marker
        self.rng = np.random.default_rng(seed)
        self.states = generate_all_valid_states(marker)
        self._values: Dict[GameState, float] = {s: 0.0 for s in self.states}
        self._current: Dict[GameState, Move] = {}
        self.iterations = 0
        self.evaluation_sweeps = 0
        self.policy: Optional[Policy] = None
        self._init_random_policy()

    def _init_random_policy(self) -> None:
        for state in self.states:
            if not state.is_terminal():
                self._current[state] = choose_move(state, self.rng)

    @property
    def values(self) -> Mapping[GameState, float]:
        return MappingProxyType(self._values)

    @property
    def current_moves(self) -> Mapping[GameState, Move]:
        return MappingProxyType(self._current)

    def _sweep(self, values: Mapping[GameState, float]) -> Dict[GameState, float]:
        new_values: Dict[GameState, float] = {}
        for state in self.states:
            if state.is_terminal():
                new_values[state] = 0.0
                continue
            new_values[state] = expected_return(
                self.mdp, state, self._current[state], values, self.discount
            )
        return new_values

    def evaluate_policy(self, delta: Optional[float] = None) -> int:
        """Evaluate the current policy until the largest change is <= delta; return sweep count."""
        tol = self.delta if delta is None else delta
        values: Mapping[GameState, float] = self._values
        sweeps = 0
        while True:
            new_values = self._sweep(values)
            sweeps += 1
            change = max((abs(new_values[s] - values[s]) for s in self.states), default=0.0)
            values = new_values
            if change <= tol:
                break
        self._values = dict(values)
        self.evaluation_sweeps += sweeps
        logging.debug("policy evaluation converged after %d sweeps", sweeps)
        return sweeps

    def improve_policy(self) -> bool:
        """Greedy one-step improvement against the current values; True if any move changed."""
        changed = 0
        for state in self.states:
            if state.is_terminal():
                continue
            mv, value = best_move(self.mdp, state, self._values, self.discount)
            current = self._current[state]
            # keep the current move on ties
            if mv != current and value > expected_return(self.mdp, state, current, self._values, self.discount):
                self._current[state] = mv
                changed += 1
        logging.debug("policy improvement changed %d states", changed)
        return changed > 0

    def train(self) -> Policy:
        while True:
            if self.iterations >= self.max_iterations:
                raise ConvergenceError(
                    f"Policy iteration did not stabilize within {self.max_iterations} iterations"
                )
            self.evaluate_policy(self.delta)
            self.iterations += 1
            if not self.improve_policy():
                break
        self.policy = Policy(self._current, marker=self.marker)
        logging.info(
            "Policy iteration: stable after %d iterations (%d evaluation sweeps)",
            self.iterations,
            self.evaluation_sweeps,
        )
        return self.policy
