"""
Episodic environment for model-free learning: the agent submits a move, the
opponent replies, and the agent observes the state after both moves.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from .agents import RandomAgent
from .errors import IllegalMoveError, InvalidStateError
from .game_basics import X, GameState, Move
from .mdp import TicTacToeMDP


class Outcome(NamedTuple):
    state: GameState
    move: Move
    reward: float
    next_state: GameState


class TicTacToeEnvironment:
    def __init__(
        self,
        opponent=None,
        mdp: Optional[TicTacToeMDP] = None,
        marker: int = X,
        start_state: Optional[GameState] = None,
    ):
        self.opponent = opponent if opponent is not None else RandomAgent()
        self.mdp = mdp or TicTacToeMDP(marker=marker)
        self.marker = self.mdp.marker
        self.start_state = start_state or GameState.initial()
        self._state = self.start_state

    def _opponent_reply(self, state: GameState) -> GameState:
        reply = self.opponent.move(state)
        if not state.is_legal(reply):
            raise IllegalMoveError(reply, state)
        return state.apply(reply)

    def reset(self) -> GameState:
        state = self.start_state
        if not state.is_terminal() and state.to_move != self.marker:
            state = self._opponent_reply(state)
        self._state = state
        return state

    def current_state(self) -> GameState:
        return self._state

    def step(self, move: Move) -> Outcome:
        state = self._state
        if state.is_terminal():
            raise InvalidStateError(f"Episode is over in state {state.key()}; call reset()")
        if not state.is_legal(move):
            raise IllegalMoveError(move, state)
        nxt = state.apply(move)
        if not nxt.is_terminal():
            nxt = self._opponent_reply(nxt)
        self._state = nxt
        return Outcome(state, move, self.mdp.reward(nxt), nxt)
