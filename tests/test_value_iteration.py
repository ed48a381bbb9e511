import pytest

from tttmdp.game_basics import X, GameState, Move
from tttmdp.mdp import TicTacToeMDP
from tttmdp.selection import expected_return
from tttmdp.value_iteration import ValueIterationSolver

NEAR_WIN = GameState((1, 2, 2, 0, 1, 0, 0, 0, 0), X)


@pytest.fixture(scope="module")
def trained():
    solver = ValueIterationSolver(k=10)
    solver.train()
    return solver


def test_values_start_at_zero_and_zero_sweeps_change_nothing():
    solver = ValueIterationSolver(k=0)
    assert all(v == 0.0 for v in solver.values.values())
    solver.iterate()
    assert all(v == 0.0 for v in solver.values.values())
    assert solver.sweeps_done == 0


def test_single_sweep_uses_previous_values_only():
    solver = ValueIterationSolver()
    solver.iterate(1)
    # one synchronous sweep from V0 = 0 only sees immediate rewards
    assert solver.values[NEAR_WIN] == pytest.approx(10.0)
    assert solver.values[GameState.initial()] == pytest.approx(0.0)


def test_terminal_states_stay_zero(trained):
    terminal = [s for s in trained.states if s.is_terminal()]
    assert terminal
    assert all(trained.values[s] == 0.0 for s in terminal)


def test_policy_covers_non_terminal_states_with_legal_moves(trained):
    policy = trained.policy
    non_terminal = [s for s in trained.states if not s.is_terminal()]
    assert len(policy) == len(non_terminal)
    for s in non_terminal:
        assert s.is_legal(policy.move_for(s))
    assert all(s not in policy for s in trained.states if s.is_terminal())


def test_near_win_picks_winning_move(trained):
    assert trained.policy.move_for(NEAR_WIN) == Move(8, X)
    assert trained.values[NEAR_WIN] == pytest.approx(10.0)


def test_extracted_moves_maximize_lookahead(trained):
    mdp = trained.mdp
    for s in list(trained.policy.states())[:200]:
        chosen = expected_return(mdp, s, trained.policy.move_for(s), trained.values, trained.discount)
        for mv in s.legal_actions():
            assert expected_return(mdp, s, mv, trained.values, trained.discount) <= chosen + 1e-12


def test_extraction_is_idempotent(trained):
    assert trained.extract_policy() == trained.extract_policy()


def test_more_sweeps_do_not_move_a_converged_solution(trained):
    # the agent makes at most five moves, so ten sweeps are already exact
    again = ValueIterationSolver(k=20)
    again.iterate()
    assert max(abs(again.values[s] - trained.values[s]) for s in trained.states) < 1e-9


def test_discount_and_budget_are_validated():
    with pytest.raises(ValueError):
        ValueIterationSolver(discount=1.5)
    with pytest.raises(ValueError):
        ValueIterationSolver(k=-1)
    solver = ValueIterationSolver(k=2)
    with pytest.raises(ValueError):
        solver.iterate(-1)
    assert solver.sweeps_done == 0


def test_solvers_do_not_share_values():
    mdp = TicTacToeMDP()
    a = ValueIterationSolver(mdp, k=1)
    b = ValueIterationSolver(mdp, k=1)
    a.iterate()
    assert b.values[NEAR_WIN] == 0.0
