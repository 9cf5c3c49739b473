"""
Facility Import Service - Framework-agnostic workbook import.

Imports objects, vertices and links from a spreadsheet workbook into a
facility model, with progress callback support for CLI or UI front ends.

Workflow:
    1. Classify worksheets by title prefix (objects*, links*, vertices*)
    2. Upsert objects from every Objects sheet
    3. Stage vertices from every Vertices sheet
    4. Create links from every Links sheet, routed through staged vertices

Steps 2-4 run inside one bulk-update scope of the model.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Union
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from backend.config import Settings, get_settings
from services.exceptions import (
    ImportAbortedError, NoActiveModelError, NoImportableWorksheetsError, UnsupportedWorkbookError
)
from services.import_log import ImportLog
from services.import_report import ImportReport
from services.link_import_service import LinkImporter, VertexCollector
from services.object_import_service import ObjectImporter
from services.property_service import PropertyValueCoder
from services.worksheet_service import ClassifiedWorksheets, classify_worksheets

logger = logging.getLogger(__name__)


class FacilityImportService:
    """
    Framework-agnostic facility workbook import service.

    Only run-level failures raise (see ``services.exceptions``); rows and
    sheets that cannot be imported are logged to ``self.log`` and recorded on
    the returned ImportReport.
    """

    def __init__(
        self,
        model,
        log: Optional[ImportLog] = None,
        progress_callback: Optional[Callable[[str, float, str], None]] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize facility import service.

        Args:
            model: Target facility model (None means there is no active model)
            log: Import log sink; a new one is created if omitted
            progress_callback: Optional callback for progress updates
                              Signature: callback(stage: str, percent: float, message: str)
            settings: Settings to use instead of the environment defaults
        """
        self.model = model
        self.settings = settings or get_settings()
        self.log = log if log is not None else ImportLog(excludes=self.settings.LOG_EXCLUDES)
        self.progress_callback = progress_callback or (lambda *args: None)
        self.coder = PropertyValueCoder()

    def _emit_progress(self, stage: str, percent: float, message: str):
        """Emit progress update via callback."""
        self.progress_callback(stage, percent, message)
        logger.info(f"Progress: {stage} ({percent:.1f}%) - {message}")

    def load_workbook(self, file_path: Union[str, Path]):
        """Open a workbook for reading cell values (not formulas)."""
        path = Path(file_path)
        allowed = [ext.lower() for ext in self.settings.ALLOWED_EXTENSIONS]
        if path.suffix.lower() not in allowed:
            raise UnsupportedWorkbookError(
                f"Unsupported workbook type {path.suffix!r}; expected one of {', '.join(allowed)}"
            )
        logger.info(f"Loading workbook: {path}")
        try:
            return openpyxl.load_workbook(path, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError) as e:
            raise UnsupportedWorkbookError(f"Cannot read workbook {path.name}: {e}") from e

    def import_file(self, file_path: Union[str, Path]) -> ImportReport:
        """
        Import a workbook file into the model.

        Args:
            file_path: Path to an .xlsx/.xlsm workbook

        Returns:
            ImportReport with per-sheet counts and diagnostics
        """
        if self.model is None:
            raise NoActiveModelError()

        workbook = self.load_workbook(file_path)
        try:
            return self.import_workbook(workbook, source=str(file_path))
        finally:
            workbook.close()

    def classify(self, workbook) -> ClassifiedWorksheets:
        return classify_worksheets(workbook.worksheets)

    def import_workbook(self, workbook, source: Optional[str] = None) -> ImportReport:
        """
        Import an opened workbook into the model.

        Raises:
            NoActiveModelError: there is no target model
            NoImportableWorksheetsError: no Objects or Links worksheets
            ImportAbortedError: unhandled failure, with the last position marker
        """
        if self.model is None:
            raise NoActiveModelError()

        report = ImportReport(source=source)
        logger.info(f"Starting facility import from {source or 'workbook'}")

        self._emit_progress('checking', 25, 'Checking worksheets')
        report.marker = "Categorizing Worksheets."
        classified = self.classify(workbook)
        if not classified.is_importable:
            self.log.error("Workbook contains no valid object or link worksheets.")
            raise NoImportableWorksheetsError()

        logger.info(
            f"Found {len(classified.objects)} objects, {len(classified.vertices)} vertices "
            f"and {len(classified.links)} links worksheets"
        )

        try:
            with self.model.bulk_update():
                self._emit_progress('objects', 50, 'Building objects')
                ObjectImporter(self.model, self.log, report, self.coder).import_sheets(classified.objects)

                vertices = VertexCollector(self.model, self.log, report).collect(classified.vertices)

                self._emit_progress('links', 75, 'Building links')
                LinkImporter(
                    self.model, self.log, report, vertices,
                    coder=self.coder,
                    network_class=self.settings.NETWORK_ELEMENT_CLASS
                ).import_sheets(classified.links)
        except Exception as e:
            logger.error(f"Import failed at {report.marker}: {e}", exc_info=True)
            self.log.error(f"Import aborted. Marker={report.marker} Err={e}")
            raise ImportAbortedError(report.marker, e) from e

        self._emit_progress('complete', 100, 'Complete')
        logger.info(
            f"Import completed: added={report.added} updated={report.updated} "
            f"skipped={report.skipped}"
        )
        return report
