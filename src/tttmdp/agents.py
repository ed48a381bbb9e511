"""
Agents that pick moves: policy-driven, uniformly random, and a human at the terminal.
"""
from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from .errors import InvalidStateError
from .game_basics import GameState, Move
from .policy import Policy
from .selection import choose_move


class Agent:
    """Plays the moves of a fixed policy."""

    name = "policy"

    def __init__(self, policy: Optional[Policy] = None):
        self.policy = policy

    def move(self, state: GameState) -> Move:
        if self.policy is None:
            raise InvalidStateError("Agent has no policy")
        return self.policy.move_for(state)


class RandomAgent(Agent):
    name = "random"

    def __init__(self, seed: Optional[int] = None):
        super().__init__(None)
        self.rng = np.random.default_rng(seed)

    def move(self, state: GameState) -> Move:
        return choose_move(state, self.rng)


class HumanAgent(Agent):
    """Reads a cell number 1-9 (row-major) until a legal one is given."""

    name = "human"

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
        show_board: bool = True,
    ):
        super().__init__(None)
        self.input_fn = input_fn
        self.output_fn = output_fn
        self.show_board = show_board

    def move(self, state: GameState) -> Move:
        legal = {m.cell: m for m in state.legal_actions()}
        if not legal:
            raise InvalidStateError(f"No legal moves in state {state.key()}")
        if self.show_board:
            self.output_fn(state.render())
        while True:
            raw = self.input_fn("Your move (1-9): ").strip()
            if raw.isdigit() and int(raw) - 1 in legal:
                return legal[int(raw) - 1]
            self.output_fn(f"Invalid move {raw!r}; free cells: {sorted(c + 1 for c in legal)}")
