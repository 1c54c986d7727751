"""
Exception types raised by Mockly.
"""


class MocklyError(Exception):
    """Base class for all Mockly errors."""


class InvalidConnectionError(MocklyError, ValueError):
    """The submitted project URL or anon key is malformed."""


class FixGenerationError(MocklyError):
    """An AI provider failed to produce a usable fix."""
