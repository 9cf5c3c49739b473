"""Per-sheet and per-run counters for a workbook import."""

from dataclasses import dataclass, field
from typing import List, Optional

from services.schemas import ImportSummary, SheetSummary


@dataclass
class SheetReport:
    """Result of importing one worksheet."""
    sheet_name: str
    kind: str
    rows_read: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    aborted_at_row: Optional[int] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.aborted_at_row is not None

    def to_summary(self) -> SheetSummary:
        return SheetSummary(
            sheet_name=self.sheet_name,
            kind=self.kind,
            rows_read=self.rows_read,
            added=self.added,
            updated=self.updated,
            skipped=self.skipped,
            aborted_at_row=self.aborted_at_row,
            diagnostics=list(self.diagnostics),
        )


@dataclass
class ImportReport:
    """Result of importing a workbook.

    ``marker`` tracks the last attempted position ("Sheet=<name> Row=<n>")
    so a fatal failure can say where it happened.
    """
    source: Optional[str] = None
    sheets: List[SheetReport] = field(default_factory=list)
    vertices_staged: int = 0
    marker: str = "Begin."

    def start_sheet(self, sheet_name: str, kind: str) -> SheetReport:
        sheet_report = SheetReport(sheet_name=sheet_name, kind=kind)
        self.sheets.append(sheet_report)
        return sheet_report

    def mark(self, sheet_name: str, row: int):
        self.marker = f"Sheet={sheet_name} Row={row}"

    def sheets_of_kind(self, kind: str) -> List[SheetReport]:
        return [s for s in self.sheets if s.kind == kind]

    def sheet(self, sheet_name: str) -> Optional[SheetReport]:
        for sheet_report in self.sheets:
            if sheet_report.sheet_name == sheet_name:
                return sheet_report
        return None

    @property
    def added(self) -> int:
        return sum(s.added for s in self.sheets)

    @property
    def updated(self) -> int:
        return sum(s.updated for s in self.sheets)

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.sheets)

    def to_summary(self) -> ImportSummary:
        return ImportSummary(
            source=self.source,
            added=self.added,
            updated=self.updated,
            skipped=self.skipped,
            vertices_staged=self.vertices_staged,
            sheets=[s.to_summary() for s in self.sheets],
        )
