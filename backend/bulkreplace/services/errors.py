"""Error taxonomy for the scan-and-replace engine.

Only the input-validation errors (empty term, empty replacement, missing
confirmation) propagate to callers. Everything raised at the record-store
boundary is caught per table during a scan and per item during a replace.
"""

from __future__ import annotations


class ReplaceError(Exception):
    """Base class for all engine errors."""


class EmptySearchTerm(ReplaceError):
    """Raised when a scan or replace is requested without a search term."""

    def __init__(self) -> None:
        super().__init__("Please enter a search text.")


class EmptyReplacementText(ReplaceError):
    """Raised when a replace pass is requested without replacement text."""

    def __init__(self) -> None:
        super().__init__("Please enter replacement text.")


class ConfirmationRequired(ReplaceError):
    """Raised when a live replace runs without the backup confirmation."""

    def __init__(self) -> None:
        super().__init__(
            "You must confirm that a database backup has been made before proceeding"
        )


class WildcardReplacement(ReplaceError):
    """Raised when a wildcard search is used for replacement."""

    def __init__(self) -> None:
        super().__init__("Wildcard searches can be scanned but not replaced")


class TableUnavailable(ReplaceError):
    """A catalog table is missing from the record store."""


class FieldUnavailable(ReplaceError):
    """A catalog field is missing from its table."""


class DecodeFailure(ReplaceError):
    """A JSON or serialized field could not be decoded."""


class RecordNotFound(ReplaceError):
    """The record vanished between scan and replace."""

    def __init__(self, table: str, record_id: int) -> None:
        super().__init__("Record not found")
        self.table = table
        self.record_id = record_id


class StoreWriteFailure(ReplaceError):
    """The record store rejected an update."""


class StoreConnectionFailure(ReplaceError):
    """The record store could not be queried."""
