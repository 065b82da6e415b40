from __future__ import annotations


class UniconvertError(Exception):
    """Base class for every error raised by uniconvert."""


class ConfigError(UniconvertError, ValueError):
    pass


class SpreadsheetDecodeError(UniconvertError, ValueError):
    """The uploaded workbook could not be read into rows."""


class SuggestionError(UniconvertError, RuntimeError):
    """The AI matching request failed; no suggestions were attached."""


class MissingCredentialError(SuggestionError):
    pass
