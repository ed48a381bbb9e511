"""
Tabular Q-learning against an opponent-driven environment.
Notes:
- Behavior policy is epsilon-greedy; the learned (target) policy is greedy, so
  this is off-policy control.
- When exploiting, ties for the best Q-value are broken uniformly at random,
  and a greedy move that is missing or not legal is replaced by a random legal
  move. "No Q data yet" and "explore" therefore share a path, which affects how
  early training behaves. Policy extraction stays deterministic: the first
  maximizer wins.
- TD update: Q(s,a) += alpha * (r + discount * maxQ(s') - Q(s,a)), with
  maxQ(s') = 0 for terminal s'.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from .agents import RandomAgent
from .environment import TicTacToeEnvironment
from .errors import IllegalMoveError, InvalidStateError
from .game_basics import X, GameState, Move, generate_all_valid_states
from .policy import Policy
from .selection import choose_move


class QTable:
    """Q-values keyed by (state, move)."""

    def __init__(self):
        self._q: Dict[Tuple[GameState, Move], float] = {}

    def get(self, state: GameState, move: Move) -> Optional[float]:
        return self._q.get((state, move))

    def set(self, state: GameState, move: Move, value: float) -> None:
        self._q[(state, move)] = value

    def best_move(self, state: GameState) -> Optional[Move]:
        """Highest-valued legal move with an entry; first one wins ties. None if no entries."""
        best: Optional[Move] = None
        best_value = float('-inf')
        for mv in state.legal_actions():
            q = self._q.get((state, mv))
            if q is not None and q > best_value:
                best_value = q
                best = mv
        return best

    def best_moves(self, state: GameState) -> List[Move]:
        """Every legal move sharing the highest Q-value, in move order. Empty if no entries."""
        best: List[Move] = []
        best_value = float('-inf')
        for mv in state.legal_actions():
            q = self._q.get((state, mv))
            if q is None:
                continue
            if q > best_value:
                best_value = q
                best = [mv]
            elif q == best_value:
                best.append(mv)
        return best

    def max_value(self, state: GameState) -> float:
        values: List[float] = []
        for mv in state.legal_actions():
            q = self._q.get((state, mv))
            if q is not None:
                values.append(q)
        return max(values) if values else 0.0

    def items(self) -> Iterator[Tuple[Tuple[GameState, Move], float]]:
        return iter(self._q.items())

    def __contains__(self, key: object) -> bool:
        return key in self._q

    def __len__(self) -> int:
        return len(self._q)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QTable):
            return NotImplemented
        return self._q == other._q


class QLearningSolver:
    def __init__(
        self,
        env: Optional[TicTacToeEnvironment] = None,
        opponent=None,
        alpha: float = 0.1,
        discount: float = 0.9,
        epsilon: float = 0.1,
        num_episodes: int = 10000,
        seed: Optional[int] = None,
        marker: int = X,
    ):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"Learning rate must be in (0,1]: {alpha}")
        if not 0.0 <= discount <= 1.0:
            raise ValueError(f"Discount must be in [0,1]: {discount}")
        if not 0.0 <= epsilon <= 1.0:
            raise ValueError(f"Epsilon must be in [0,1]: {epsilon}")
        if env is None:
            env = TicTacToeEnvironment(
                opponent if opponent is not None else RandomAgent(seed),
                marker=marker,
            )
        if env.marker != marker:
            raise ValueError(f"Environment plays marker {env.marker}, solver expects {marker}")
        self.env = env
        self.alpha = alpha
        self.discount = discount
        self.epsilon = epsilon
        self.num_episodes = num_episodes
        self.marker = marker
        self.rng = np.random.default_rng(seed)
        self.states = generate_all_valid_states(marker)
        self.q_table = QTable()
        self.episodes_done = 0
        self.steps_done = 0
        self.policy: Optional[Policy] = None
        self._init_q_table()

    def _init_q_table(self) -> None:
        for state in self.states:
            for mv in state.legal_actions():
                self.q_table.set(state, mv, 0.0)

    def select_move(self, state: GameState) -> Move:
        """Epsilon-greedy choice for ``state``."""
        if self.rng.random() < self.epsilon:
            return choose_move(state, self.rng)
        ties = self.q_table.best_moves(state)
        # a unique greedy move is taken; ties and missing entries go to random
        preferred = ties[0] if len(ties) == 1 else None
        return choose_move(state, self.rng, preferred=preferred, among=ties)

    def update(self, state: GameState, move: Move, reward: float, next_state: GameState) -> float:
        current = self.q_table.get(state, move)
        current = 0.0 if current is None else current
        max_next = 0.0 if next_state.is_terminal() else self.q_table.max_value(next_state)
        new_value = current + self.alpha * (reward + self.discount * max_next - current)
        self.q_table.set(state, move, new_value)
        return new_value

    def run_episode(self) -> float:
        """Play one episode, updating Q along the way; returns the undiscounted reward sum."""
        self.env.reset()
        state = self.env.current_state()
        total = 0.0
        while not state.is_terminal():
            legal = state.legal_actions()
            if not legal:
                break
            move = self.select_move(state)
            if move not in legal:
                raise IllegalMoveError(move, state)
            outcome = self.env.step(move)
            next_state = outcome.next_state
            if next_state is None:
                raise InvalidStateError(f"Environment returned no state after {move} in {state.key()}")
            self.update(state, move, outcome.reward, next_state)
            total += outcome.reward
            self.steps_done += 1
            state = next_state
        self.episodes_done += 1
        return total

    def extract_policy(self) -> Policy:
        moves: Dict[GameState, Move] = {}
        for state in self.states:
            if not state.legal_actions():
                continue
            moves[state] = choose_move(state, self.rng, preferred=self.q_table.best_move(state))
        return Policy(moves, marker=self.marker)

    def train(self) -> Policy:
        log_every = max(1, self.num_episodes // 10)
        returns: List[float] = []
        for episode in range(self.num_episodes):
            returns.append(self.run_episode())
            if (episode + 1) % log_every == 0:
                logging.debug(
                    "q-learning episode %d/%d: mean return (last %d) %.3f",
                    episode + 1,
                    self.num_episodes,
                    log_every,
                    float(np.mean(returns[-log_every:])),
                )
        self.policy = self.extract_policy()
        logging.info(
            "Q-learning: %d episodes, %d steps, policy covers %d states",
            self.episodes_done,
            self.steps_done,
            len(self.policy),
        )
        return self.policy
