"""Exceptions and warnings raised by the tract join pipeline."""


class TractJoinError(Exception):
    """Base class for pipeline errors."""


class FetchError(TractJoinError):
    """A data source could not be read or parsed as a whole."""


class KeyIntegrityError(TractJoinError, KeyError):
    """A key is missing or duplicated where identity is required."""

    def __str__(self):
        # KeyError wraps its message in quotes
        return str(self.args[0]) if self.args else ""


class UnmatchedPointWarning(UserWarning):
    """Some points fell outside every polygon."""
