"""
Game basics: board representation, rules, states, moves and state enumeration.
Notes:
- The board is a tuple of 9 cells: 0=empty, 1=X, 2=O. X always starts.
- A GameState pairs the board with the side-to-move marker; two states with the
  same content are the same key everywhere (value maps, policies, Q-tables).
- Valid states have counts either equal (X to move) or X has one more (O to move).
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

from .errors import IllegalMoveError, InvalidStateError

EMPTY = 0
X = 1
O = 2

SYMBOLS = {EMPTY: '.', X: 'X', O: 'O'}

WIN_PATTERNS = [
    [0, 1, 2], [3, 4, 5], [6, 7, 8],
    [0, 3, 6], [1, 4, 7], [2, 5, 8],
    [0, 4, 8], [2, 4, 6]
]


def serialize_board(board) -> str:
    return ''.join(str(cell) for cell in board)


def deserialize_board(board_str: str) -> List[int]:
    return [int(cell) for cell in board_str]


def get_winner(board) -> int:
    for pattern in WIN_PATTERNS:
        a, b, c = pattern
        v = board[a]
        if v != 0 and v == board[b] and v == board[c]:
            return v
    return 0


def is_draw(board) -> bool:
    return 0 not in board and get_winner(board) == 0


def get_piece_counts(board) -> Tuple[int, int]:
    return board.count(X), board.count(O)


def is_valid_state(board) -> bool:
    x_count, o_count = get_piece_counts(board)
    if not (x_count == o_count or x_count == o_count + 1):
        return False
    w = get_winner(board)
    if w == X and x_count != o_count + 1:
        return False
    if w == O and x_count != o_count:
        return False
    # no double winners
    def count_wins(p: int) -> int:
        return sum(1 for pat in WIN_PATTERNS if all(board[i] == p for i in pat))
    if count_wins(X) > 0 and count_wins(O) > 0:
        return False
    return True


def current_player(board) -> int:
    x, o = get_piece_counts(board)
    return X if x == o else O


def other(marker: int) -> int:
    if marker not in (X, O):
        raise ValueError(f"Unknown marker: {marker}")
    return O if marker == X else X


@lru_cache(maxsize=None)
def _empty_cells(board_t: tuple) -> Tuple[int, ...]:
    return tuple(i for i, v in enumerate(board_t) if v == EMPTY)


@lru_cache(maxsize=None)
def _is_terminal(board_t: tuple) -> bool:
    return get_winner(board_t) != 0 or EMPTY not in board_t


@dataclass(frozen=True)
class Move:
    """A mark placed by ``player`` on ``cell`` (0..8, row-major)."""

    cell: int
    player: int

    @property
    def row(self) -> int:
        return self.cell // 3

    @property
    def col(self) -> int:
        return self.cell % 3

    def __str__(self) -> str:
        return f"{SYMBOLS[self.player]}@({self.row},{self.col})"


@dataclass(frozen=True)
class GameState:
    board: Tuple[int, ...]
    to_move: int

    def __post_init__(self):
        if len(self.board) != 9 or any(v not in (EMPTY, X, O) for v in self.board):
            raise InvalidStateError(f"Malformed board: {self.board!r}")
        if self.to_move not in (X, O):
            raise InvalidStateError(f"Unknown side to move: {self.to_move!r}")

    @classmethod
    def initial(cls) -> "GameState":
        return cls(tuple([EMPTY] * 9), X)

    @classmethod
    def from_board(cls, board) -> "GameState":
        b = tuple(board)
        return cls(b, current_player(b))

    def is_terminal(self) -> bool:
        return _is_terminal(self.board)

    def winner(self) -> int:
        return get_winner(self.board)

    def legal_actions(self) -> List[Move]:
        """Moves for the side to move; empty when the game is over."""
        if self.is_terminal():
            return []
        return [Move(i, self.to_move) for i in _empty_cells(self.board)]

    def is_legal(self, move: Move) -> bool:
        return (
            not self.is_terminal()
            and move.player == self.to_move
            and 0 <= move.cell < 9
            and self.board[move.cell] == EMPTY
        )

    def apply(self, move: Move) -> "GameState":
        if not self.is_legal(move):
            raise IllegalMoveError(move, self)
        lst = list(self.board)
        lst[move.cell] = move.player
        return GameState(tuple(lst), other(self.to_move))

    def key(self) -> str:
        return f"{serialize_board(self.board)}:{self.to_move}"

    @classmethod
    def from_key(cls, key: str) -> "GameState":
        raw, sep, marker = key.partition(':')
        if not sep or len(raw) != 9 or any(c not in "012" for c in raw) or marker not in ("1", "2"):
            raise InvalidStateError(f"Malformed state key: {key!r}")
        return cls(tuple(deserialize_board(raw)), int(marker))

    def render(self) -> str:
        rows = []
        for r in range(3):
            rows.append(' '.join(SYMBOLS[v] for v in self.board[r * 3:r * 3 + 3]))
        return '\n'.join(rows)

    def __str__(self) -> str:
        return self.key()


@lru_cache(maxsize=None)
def all_reachable_states() -> Tuple[GameState, ...]:
    """Enumerate every state reachable from the empty board (BFS order)."""
    start = GameState.initial()
    order = []
    q = deque([start])
    seen = {start}
    while q:
        s = q.popleft()
        order.append(s)
        for mv in s.legal_actions():
            child = s.apply(mv)
            if child not in seen:
                seen.add(child)
                q.append(child)
    return tuple(order)


@lru_cache(maxsize=None)
def generate_all_valid_states(marker: int = X) -> Tuple[GameState, ...]:
    """All reachable states where ``marker`` is to move, or the game is over.

    The tuple is cached and shared read-only between solver instances.
    """
    if marker not in (X, O):
        raise ValueError(f"Unknown marker: {marker}")
    return tuple(s for s in all_reachable_states() if s.is_terminal() or s.to_move == marker)
