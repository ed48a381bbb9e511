"""
Tic-Tac-Toe as an MDP from the agent's perspective.
Notes:
- One MDP step is a full environment turn: the agent's move, then (unless the
  game ended) a uniformly random reply by the opponent.
- Rewards are attached to the resulting state: win/lose/draw on terminal states,
  the living reward otherwise.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple

from .errors import IllegalMoveError, InvalidStateError
from .game_basics import X, GameState, Move, other


@dataclass(frozen=True)
class Rewards:
    win: float = 10.0
    lose: float = -10.0
    living: float = 0.0
    draw: float = 0.0


class Transition(NamedTuple):
    next_state: GameState
    reward: float
    probability: float


class TicTacToeMDP:
    def __init__(self, rewards: Optional[Rewards] = None, marker: int = X):
        self.rewards = rewards or Rewards()
        self.marker = marker
        self.opponent = other(marker)
        self._cache: Dict[Tuple[GameState, Move], List[Transition]] = {}

    def reward(self, state: GameState) -> float:
        if not state.is_terminal():
            return self.rewards.living
        w = state.winner()
        if w == self.marker:
            return self.rewards.win
        if w == self.opponent:
            return self.rewards.lose
        return self.rewards.draw

    def transitions(self, state: GameState, move: Move) -> List[Transition]:
        """Distribution over (next_state, reward, probability) for the agent's move."""
        key = (state, move)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if state.is_terminal():
            raise InvalidStateError(f"No transitions from terminal state {state.key()}")
        if state.to_move != self.marker:
            raise InvalidStateError(f"State {state.key()} is not the agent's turn")
        if not state.is_legal(move):
            raise IllegalMoveError(move, state)

        after = state.apply(move)
        if after.is_terminal():
            result = [Transition(after, self.reward(after), 1.0)]
        else:
            replies = after.legal_actions()
            prob = 1.0 / len(replies)
            result = []
            for reply in replies:
                nxt = after.apply(reply)
                result.append(Transition(nxt, self.reward(nxt), prob))
        self._cache[key] = result
        return result
