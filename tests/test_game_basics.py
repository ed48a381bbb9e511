import pytest

from tttmdp.errors import IllegalMoveError, InvalidStateError
from tttmdp.game_basics import (
    O,
    X,
    GameState,
    Move,
    all_reachable_states,
    generate_all_valid_states,
    get_winner,
    is_draw,
)


def test_reachable_counts_snapshot():
    states = all_reachable_states()
    assert len(states) == 5478
    terminal = [s for s in states if s.is_terminal()]
    assert len(terminal) == 958
    assert sum(1 for s in terminal if s.winner() == X) == 626
    assert sum(1 for s in terminal if s.winner() == O) == 316
    assert sum(1 for s in terminal if is_draw(s.board)) == 16


def test_enumeration_is_agent_turn_or_terminal():
    for marker in (X, O):
        states = generate_all_valid_states(marker)
        assert len(set(states)) == len(states)
        assert all(s.is_terminal() or s.to_move == marker for s in states)
        expected = {s for s in all_reachable_states() if s.is_terminal() or s.to_move == marker}
        assert set(states) == expected
    assert GameState.initial() in generate_all_valid_states(X)
    assert GameState.initial() not in generate_all_valid_states(O)


def test_enumeration_is_cached_and_shared():
    assert generate_all_valid_states(X) is generate_all_valid_states(X)


def test_states_with_same_content_are_the_same_key():
    a = GameState((1, 2, 0, 0, 1, 0, 0, 0, 0), O)
    b = GameState.from_board([1, 2, 0, 0, 1, 0, 0, 0, 0])
    assert a == b and hash(a) == hash(b)
    assert {a: 1.0}[b] == 1.0
    # same board, different side to move is a different state
    assert GameState(a.board, X) != a


def test_legal_actions_and_apply():
    s = GameState.initial()
    moves = s.legal_actions()
    assert [m.cell for m in moves] == list(range(9))
    assert all(m.player == X for m in moves)
    child = s.apply(Move(4, X))
    assert child.board[4] == X and child.to_move == O
    with pytest.raises(IllegalMoveError):
        child.apply(Move(4, O))  # occupied
    with pytest.raises(IllegalMoveError):
        child.apply(Move(0, X))  # wrong player


def test_terminal_state_has_no_legal_actions():
    x_win = GameState((1, 1, 1, 2, 2, 0, 0, 0, 0), O)
    assert x_win.is_terminal()
    assert get_winner(x_win.board) == X
    assert x_win.legal_actions() == []
    with pytest.raises(IllegalMoveError):
        x_win.apply(Move(5, O))


def test_key_round_trip_and_malformed_keys():
    s = GameState((1, 2, 0, 0, 1, 0, 0, 0, 0), O)
    assert s.key() == "120010000:2"
    assert GameState.from_key(s.key()) == s
    for bad in ["", "120010000", "12001000:2", "120010000:3", "12001000x:1"]:
        with pytest.raises(InvalidStateError):
            GameState.from_key(bad)


def test_render():
    s = GameState((1, 2, 0, 0, 1, 0, 0, 0, 0), O)
    assert s.render() == "X O .\n. X .\n. . ."
    assert str(Move(5, X)) == "X@(1,2)"
