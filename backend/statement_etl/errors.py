"""
Error taxonomy for the statement pipeline.

Every failure here is fatal for the call: a parse either returns a complete
ParseResult or raises one of these. Lines that cannot be classified are not
errors; they are dropped silently.
"""


class StatementParseError(Exception):
    """Base class for all pipeline failures."""


class UnsupportedFormatError(StatementParseError):
    pass


class EmptyInputError(StatementParseError):
    pass


class NoDataError(StatementParseError):
    pass


class RendererUnavailableError(StatementParseError):
    """The page-rendering backend could not be initialized for this document."""
