"""
Policy artifact: an immutable mapping from non-terminal state to the chosen move.
Every solver produces one; agents and the play driver consume it.
"""
from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from .errors import InvalidStateError
from .game_basics import X, GameState, Move

POLICY_FORMAT_VERSION = 1


class Policy:
    def __init__(self, moves: Optional[Mapping[GameState, Move]] = None, marker: int = X):
        self._moves = MappingProxyType(dict(moves or {}))
        self.marker = marker

    def move_for(self, state: GameState) -> Move:
        try:
            return self._moves[state]
        except KeyError:
            raise InvalidStateError(f"Policy has no move for state {state.key()}") from None

    def states(self) -> Iterator[GameState]:
        return iter(self._moves)

    def as_mapping(self) -> Mapping[GameState, Move]:
        return self._moves

    def __contains__(self, state: object) -> bool:
        return state in self._moves

    def __len__(self) -> int:
        return len(self._moves)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Policy):
            return NotImplemented
        return self.marker == other.marker and dict(self._moves) == dict(other._moves)

    def __repr__(self) -> str:
        return f"Policy(states={len(self)}, marker={self.marker})"

    def to_dict(self) -> Dict[str, object]:
        return {
            "format_version": POLICY_FORMAT_VERSION,
            "marker": self.marker,
            "moves": {s.key(): m.cell for s, m in sorted(self._moves.items(), key=lambda kv: kv[0].key())},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Policy":
        if payload.get("format_version") != POLICY_FORMAT_VERSION:
            raise InvalidStateError(f"Unsupported policy format: {payload.get('format_version')!r}")
        moves: Dict[GameState, Move] = {}
        for key, cell in dict(payload.get("moves", {})).items():  # type: ignore[arg-type]
            state = GameState.from_key(key)
            move = Move(int(cell), state.to_move)
            if not state.is_legal(move):
                raise InvalidStateError(f"Policy move {move} is not legal in {key}")
            moves[state] = move
        return cls(moves, marker=int(payload.get("marker", X)))  # type: ignore[arg-type]

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        return path

    @classmethod
    def load(cls, path: Path) -> "Policy":
        try:
            payload = json.loads(Path(path).read_text())
        except json.JSONDecodeError as e:
            raise InvalidStateError(f"Policy file {path} is not valid JSON: {e}") from e
        return cls.from_dict(payload)
