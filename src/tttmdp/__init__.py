"""tttmdp package.

Value iteration, policy iteration and Q-learning for Tic-Tac-Toe played as an
MDP against a random opponent, plus the game model, environment and a CLI.

Convenience imports are exposed for common workflows.
"""

from .game_basics import GameState, Move, generate_all_valid_states
from .mdp import Rewards, TicTacToeMDP
from .policy import Policy
from .policy_iteration import PolicyIterationSolver
from .q_learning import QLearningSolver, QTable
from .value_iteration import ValueIterationSolver

__all__ = [
    "GameState",
    "Move",
    "generate_all_valid_states",
    "Rewards",
    "TicTacToeMDP",
    "Policy",
    "ValueIterationSolver",
    "PolicyIterationSolver",
    "QLearningSolver",
    "QTable",
]
