"""
Object import service.

Reads Objects worksheets and creates or updates facility objects. Row layout::

    ClassName | ItemName | X | Y | Z | Length | Width | Height | Prop1 .. PropN

Row 1 is the header; its cells from column 9 onwards name the properties.
"""

import logging
from typing import Optional

from backend.models.facility import FacilityLocation, FacilitySize, IntelligentObject
from services.import_report import SheetReport
from services.worksheet_service import (
    OBJECTS_PREFIX, RowOutcome, WorksheetImporter, cell_float, cell_text
)

logger = logging.getLogger(__name__)

CLASS_NAME_COLUMN = 1
ITEM_NAME_COLUMN = 2
LOCATION_COLUMN = 3    # X, Y, Z in columns 3-5
SIZE_COLUMN = 6        # Length, Width, Height in columns 6-8
PROPERTY_COLUMN = 9


def read_location(sheet, row: int, first_column: int) -> Optional[FacilityLocation]:
    """Location from three consecutive cells, or None unless all three parse."""
    coordinates = [cell_float(sheet, row, first_column + offset) for offset in range(3)]
    if any(value is None for value in coordinates):
        return None
    return FacilityLocation(*coordinates)


def resolve_size(sheet, row: int, current: FacilitySize) -> FacilitySize:
    """
    New size from the Length/Width/Height cells.

    Each axis keeps its current value when the cell is empty, not a number,
    or exactly zero.
    """
    resolved = []
    for offset, current_value in enumerate(current):
        value = cell_float(sheet, row, SIZE_COLUMN + offset)
        resolved.append(current_value if value is None or value == 0 else value)
    return FacilitySize(*resolved)


class ObjectImporter(WorksheetImporter):
    """Upsert facility objects from Objects worksheets."""

    kind = OBJECTS_PREFIX

    def import_sheet(self, sheet) -> SheetReport:
        self._headers = self.header_map(sheet, PROPERTY_COLUMN)
        return super().import_sheet(sheet)

    def _import_row(self, sheet, row: int, sheet_report: SheetReport) -> RowOutcome:
        marker = f"Sheet={sheet.title} Row={row}"

        class_name = cell_text(sheet, row, CLASS_NAME_COLUMN)
        item_name = cell_text(sheet, row, ITEM_NAME_COLUMN)
        if not class_name or not item_name:
            self._diagnose(sheet_report, f"{marker}: Empty ClassName or ItemName")
            return RowOutcome.SKIP_ROW

        location = read_location(sheet, row, LOCATION_COLUMN)

        obj = self.model.find_object(item_name)
        if obj is None:
            obj = self._create(class_name, item_name, location)
            if obj is None:
                self._diagnose(sheet_report, f"{marker}: Cannot create object with className={class_name}")
                return RowOutcome.SKIP_ROW
            sheet_report.added += 1
        else:
            if location is not None:
                obj.location = location
            sheet_report.updated += 1

        obj.size = resolve_size(sheet, row, obj.size)

        self.apply_properties(sheet, row, obj, self._headers, sheet_report)
        return RowOutcome.CONTINUE

    def _create(self, class_name: str, item_name: str,
                location: Optional[FacilityLocation]) -> Optional[IntelligentObject]:
        # Objects without usable coordinates start at the origin
        obj = self.model.create_object(class_name, location or FacilityLocation())
        if obj is None:
            return None
        try:
            self.model.rename_object(obj, item_name)
        except ValueError as e:
            # An external node name is already taken by another object
            logger.debug(f"Cannot name {class_name} {item_name}: {e}")
            self.model.remove_object(obj)
            return None
        logger.debug(f"Created {class_name} {item_name}")
        return obj

    def _sheet_done(self, sheet, sheet_report: SheetReport):
        self.log.info(f"Added {sheet_report.added} objects and updated {sheet_report.updated} objects")
