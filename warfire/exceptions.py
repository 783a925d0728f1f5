"""Exceptions for the Warfire rule engine."""


class WarfireError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self):
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class InvariantError(WarfireError, AssertionError):
    """Programmer error: bad coordinates, unknown unit type, bad setup."""
    pass


class SaveError(WarfireError):
    """A save payload could not be written."""
    pass


def ensure(condition: bool, message: str, **context) -> None:
    """Fail fast when an engine invariant does not hold."""
    if not condition:
        raise InvariantError(f"Assertion failed: {message}", context)
