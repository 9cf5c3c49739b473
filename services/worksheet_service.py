"""
Worksheet classification and row-driven import plumbing.

Workbook sheets are bucketed by title prefix into Objects, Links and Vertices
sheets. Importers built on ``WorksheetImporter`` handle one data row at a time
and tell the driver loop how to proceed through a ``RowOutcome``.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from backend.models.facility import IntelligentObject, Property
from services.import_log import ImportLog, LogSeverity
from services.import_report import ImportReport, SheetReport
from services.property_service import PropertyValueCoder

OBJECTS_PREFIX = 'objects'
LINKS_PREFIX = 'links'
VERTICES_PREFIX = 'vertices'

MIN_SHEET_NAME_LENGTH = 5

# Row 1 holds column headers; data starts on row 2
FIRST_DATA_ROW = 2


class ClassifiedWorksheets(NamedTuple):
    """Worksheets bucketed by kind, each in workbook order."""
    objects: List[Any]
    links: List[Any]
    vertices: List[Any]

    @property
    def is_importable(self) -> bool:
        return bool(self.objects or self.links)


def classify_worksheet(title: str) -> Optional[str]:
    """
    Return the bucket ('objects', 'links' or 'vertices') for a sheet title.

    Matching is case-insensitive on a literal prefix; titles shorter than five
    characters never qualify. Returns None for sheets the import ignores.
    """
    name = title.lower()
    if len(name) < MIN_SHEET_NAME_LENGTH:
        return None
    for prefix in (OBJECTS_PREFIX, LINKS_PREFIX, VERTICES_PREFIX):
        if name.startswith(prefix):
            return prefix
    return None


def classify_worksheets(worksheets: Iterable[Any]) -> ClassifiedWorksheets:
    """Bucket worksheets (anything with a ``title``) preserving their order."""
    classified = ClassifiedWorksheets([], [], [])
    buckets = {
        OBJECTS_PREFIX: classified.objects,
        LINKS_PREFIX: classified.links,
        VERTICES_PREFIX: classified.vertices,
    }
    for worksheet in worksheets:
        kind = classify_worksheet(worksheet.title)
        if kind is not None:
            buckets[kind].append(worksheet)
    return classified


def cell_text(sheet, row: int, column: int) -> Optional[str]:
    """
    Cell value as text, or None for an empty cell.

    Integral floats are rendered without a trailing ".0" so numeric names
    typed into a sheet read back the way they were entered.
    """
    value = sheet.cell(row=row, column=column).value
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def cell_float(sheet, row: int, column: int) -> Optional[float]:
    """
    Cell value as a float, or None if empty or not a decimal number.
    """
    value = sheet.cell(row=row, column=column).value
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


class RowOutcome(Enum):
    """What the driver loop does after a row has been handled."""
    CONTINUE = 'continue'
    SKIP_ROW = 'skip_row'
    ABORT_SHEET = 'abort_sheet'


class WorksheetImporter:
    """
    Base class for row-driven worksheet importers.

    Subclasses set ``kind`` and implement ``_import_row``; ``import_sheets``
    walks every data row, keeps the report's position marker current and
    applies the returned ``RowOutcome``.
    """

    kind = ''

    def __init__(self, model, log: ImportLog, report: ImportReport,
                 coder: Optional[PropertyValueCoder] = None):
        self.model = model
        self.log = log
        self.report = report
        self.coder = coder or PropertyValueCoder()

    def import_sheets(self, worksheets: Iterable[Any]) -> List[SheetReport]:
        return [self.import_sheet(worksheet) for worksheet in worksheets]

    def import_sheet(self, sheet) -> SheetReport:
        sheet_report = self.report.start_sheet(sheet.title, self.kind)
        last_row = sheet.max_row or 0
        if last_row >= FIRST_DATA_ROW:
            self.log.info(f"Reading {last_row} rows from {self.kind} sheet {sheet.title}")

        for row in range(FIRST_DATA_ROW, last_row + 1):
            self.report.mark(sheet.title, row)
            sheet_report.rows_read += 1
            outcome = self._import_row(sheet, row, sheet_report)
            if outcome is RowOutcome.SKIP_ROW:
                sheet_report.skipped += 1
            elif outcome is RowOutcome.ABORT_SHEET:
                sheet_report.aborted_at_row = row
                break

        self._sheet_done(sheet, sheet_report)
        return sheet_report

    def _import_row(self, sheet, row: int, sheet_report: SheetReport) -> RowOutcome:
        raise NotImplementedError

    def _sheet_done(self, sheet, sheet_report: SheetReport):
        pass

    def _diagnose(self, sheet_report: SheetReport, message: str,
                  severity: LogSeverity = LogSeverity.WARNING):
        """Log a skip/abort reason and keep it on the sheet report."""
        sheet_report.diagnostics.append(message)
        self.log.record(severity, message)

    # ------------------------------------------------------------------
    # Property columns
    # ------------------------------------------------------------------

    @staticmethod
    def header_map(sheet, first_column: int) -> Dict[int, str]:
        """Lower-cased header names for property columns, by column index."""
        headers = {}
        for column in range(first_column, (sheet.max_column or 0) + 1):
            header = sheet.cell(row=1, column=column).value
            if isinstance(header, str) and header.strip():
                headers[column] = header.strip().lower()
        return headers

    @staticmethod
    def property_map(target: IntelligentObject) -> Dict[str, Property]:
        """Lower-cased property name -> property, first declaration wins."""
        properties = {}
        for prop in target.properties:
            properties.setdefault(prop.name.lower(), prop)
        return properties

    def apply_properties(self, sheet, row: int, target: IntelligentObject,
                         headers: Dict[int, str], sheet_report: SheetReport,
                         stop_on_failure: bool = False) -> bool:
        """
        Assign property columns of a row to the target object.

        Columns whose header matches no property of the target are skipped, as
        are empty cells. Returns False if an assignment failed; with
        ``stop_on_failure`` the remaining columns of the row are left alone.
        """
        properties = self.property_map(target)
        ok = True
        for column, property_name in headers.items():
            prop = properties.get(property_name)
            if prop is None:
                continue

            value = cell_text(sheet, row, column)
            if value is None:
                continue

            result = self.coder.decode(prop, value)
            if not result.success:
                ok = False
                self._diagnose(sheet_report, f"Sheet={sheet.title} Row={row}: {result.explanation}",
                               LogSeverity.ERROR)
                if stop_on_failure:
                    break
        return ok
