"""
Exceptions raised by the facility import services.

Only run-level failures are raised; sheet, row and cell problems are logged
and recorded on the import report instead.
"""

from typing import Optional


class FacilityImportError(Exception):
    """Base class for import failures that abort the whole run."""


class NoActiveModelError(FacilityImportError):
    """There is no target model to import into."""

    def __init__(self, message: str = "You must have an active model to run an import."):
        super().__init__(message)


class UnsupportedWorkbookError(FacilityImportError):
    """The file is not a workbook type the importer can read."""


class NoImportableWorksheetsError(FacilityImportError):
    """The workbook has neither Objects nor Links worksheets."""

    def __init__(self, message: str = "Workbook contains no valid object or link worksheets."):
        super().__init__(message)


class ImportAbortedError(FacilityImportError):
    """
    Unhandled failure during the import.

    Carries the position marker (sheet and row) of the last attempted
    operation; the original exception is chained as ``__cause__``.
    """

    def __init__(self, marker: str, error: Optional[BaseException] = None):
        self.marker = marker
        self.error = error
        detail = f"{type(error).__name__}: {error}" if error is not None else "unknown error"
        super().__init__(f"Marker={marker} Err={detail}")
