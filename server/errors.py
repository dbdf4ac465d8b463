"""
Engine error types.

IllegalMove is recoverable: the host rejects the action, leaves the snapshot
untouched and lets the player try again. InvariantViolation signals a defect
in the engine itself and should be logged, never retried.
"""


class CribbageError(Exception):
    """Base class for engine failures."""
    pass


class IllegalMove(CribbageError):
    """Raised when a command is not allowed in the current state."""
    pass


class InvariantViolation(CribbageError):
    """Raised when the engine reaches a state that should be unreachable."""
    pass
