"""Exception types for the memory pipeline.

None of these are meant to reach the chat turn. Each component catches the
errors it owns and degrades to a defined output (fallback summary, empty
context string, skipped compaction).
"""


class KindredError(Exception):
    """Base class for all kindred errors."""


class EmptyWindowError(KindredError):
    """Raised when a summary is requested for zero messages."""


class CompletionServiceError(KindredError):
    """The completion service failed, timed out, or returned an error."""


class SummaryParseError(KindredError):
    """Model output could not be parsed into summary fields."""


class StoreReadError(KindredError):
    """Reading a persisted record or log failed."""


class StoreWriteError(KindredError):
    """Writing a persisted record or log failed."""


class ContextReadError(KindredError):
    """Summaries could not be read while assembling prompt context."""
