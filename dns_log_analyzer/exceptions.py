"""
Exceptions raised by the analyzer.

Everything derives from AnalyzerError so the CLI can catch one thing and
turn it into a readable message and a non-zero exit code.
"""


class AnalyzerError(Exception):
    """Base class for analyzer failures."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class SourceUnavailableError(AnalyzerError):
    """A log file could not be opened or read."""


class SourceFormatError(AnalyzerError):
    """A log file was readable but not in a shape we understand (e.g. bad CSV header)."""


class BlocklistError(AnalyzerError):
    """The blocklist file itself could not be read."""


class NoUsableSourceError(AnalyzerError):
    """Every input source failed, so there is nothing to analyse."""
