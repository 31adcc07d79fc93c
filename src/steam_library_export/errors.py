"""
Error hierarchy for steam-library-export.

Configuration errors are fatal and stop a run before any record is
processed. Per-record problems never raise out of the pipeline: a missing
store lookup is ``None`` and a bad template slot is a ``SlotError`` value.
"""


class ExportError(Exception):
    """Base exception for all export errors."""


class ConfigurationError(ExportError):
    """Configuration is missing or invalid; the run cannot start."""


class BatchNotFound(ConfigurationError):
    """No scrape batch matched in the input directory."""


class BatchFormatError(ConfigurationError):
    """The scrape batch exists but is not a JSON list of records."""


class WriteFailure(ExportError):
    """An artifact could not be written.

    Raised per record; the pipeline reports it and moves on.
    """

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write {path}: {reason}")
