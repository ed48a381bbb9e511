"""Error taxonomy for the MDP solvers.

All of these are contract violations rather than expected runtime conditions;
nothing retries them.
"""


class TTTError(Exception):
    """Base class for errors raised by tttmdp."""


class IllegalMoveError(TTTError, ValueError):
    """A move was submitted that is not legal for the state it was paired with."""

    def __init__(self, move, state=None):
        self.move = move
        self.state = state
        msg = f"Illegal move {move}"
        if state is not None:
            msg += f" for state {state.key()}"
        super().__init__(msg)


class InvalidStateError(TTTError, ValueError):
    """A state was used somewhere it has no meaning (terminal, missing, malformed)."""


class ConvergenceError(TTTError, RuntimeError):
    """Policy iteration exceeded its alternation bound without stabilizing."""
