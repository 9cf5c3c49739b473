"""
Vertex and link import services.

Vertices worksheets are read first into a ``VertexStaging`` list; Links
worksheets then create links between existing nodes, routing each link
through the staged vertices that carry its name.

Vertices row layout::

    LinkName | X | Y | Z

Links row layout::

    ClassName | LinkName | FromNode | ToNode | NetworkName | Prop1 .. PropN
"""

import logging
from typing import Iterable, Iterator, List, NamedTuple, Optional

from backend.models.facility import FacilityLocation, NetworkElement
from services.import_log import ImportLog, LogSeverity
from services.import_report import ImportReport, SheetReport
from services.property_service import PropertyValueCoder
from services.worksheet_service import (
    LINKS_PREFIX, VERTICES_PREFIX, RowOutcome, WorksheetImporter, cell_float, cell_text
)

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_CLASS = 'Network'

# Vertices sheet columns
VERTEX_LINK_NAME_COLUMN = 1
VERTEX_LOCATION_COLUMN = 2

# Links sheet columns
CLASS_NAME_COLUMN = 1
LINK_NAME_COLUMN = 2
FROM_NODE_COLUMN = 3
TO_NODE_COLUMN = 4
NETWORK_NAME_COLUMN = 5
PROPERTY_COLUMN = 6


class Vertex(NamedTuple):
    """A staged waypoint, tagged with the name of the link it belongs to."""
    link_name: str
    x: float
    y: float
    z: float

    @property
    def location(self) -> FacilityLocation:
        return FacilityLocation(self.x, self.y, self.z)


class VertexStaging:
    """Vertices collected for one workbook import, in sheet/row order."""

    def __init__(self, vertices: Iterable[Vertex] = ()):
        self._vertices: List[Vertex] = list(vertices)

    def append(self, vertex: Vertex):
        self._vertices.append(vertex)

    def for_link(self, link_name: str) -> List[FacilityLocation]:
        """Locations staged for a link, in insertion order."""
        return [v.location for v in self._vertices if v.link_name == link_name]

    def __len__(self) -> int:
        return len(self._vertices)

    def __iter__(self) -> Iterator[Vertex]:
        return iter(self._vertices)


class VertexCollector(WorksheetImporter):
    """
    Stage vertices from Vertices worksheets.

    The first row with an empty link name or an unparsable coordinate ends
    the sheet; later rows on that sheet are not read.
    """

    kind = VERTICES_PREFIX

    def __init__(self, model, log: ImportLog, report: ImportReport,
                 staging: Optional[VertexStaging] = None):
        super().__init__(model, log, report)
        self.staging = staging if staging is not None else VertexStaging()

    def collect(self, worksheets: Iterable) -> VertexStaging:
        self.import_sheets(worksheets)
        self.report.vertices_staged = len(self.staging)
        return self.staging

    def _import_row(self, sheet, row: int, sheet_report: SheetReport) -> RowOutcome:
        marker = f"Sheet={sheet.title} Row={row}"

        link_name = cell_text(sheet, row, VERTEX_LINK_NAME_COLUMN)
        if not link_name:
            self._diagnose(sheet_report, f"{marker}: No LinkName")
            return RowOutcome.ABORT_SHEET

        coordinates = [cell_float(sheet, row, VERTEX_LOCATION_COLUMN + offset) for offset in range(3)]
        if any(value is None for value in coordinates):
            self._diagnose(sheet_report, f"{marker}: Bad Vertex Coordinate")
            return RowOutcome.ABORT_SHEET

        self.staging.append(Vertex(link_name, *coordinates))
        sheet_report.added += 1
        return RowOutcome.CONTINUE

    def _sheet_done(self, sheet, sheet_report: SheetReport):
        self.log.info(f"Staged {sheet_report.added} vertices from sheet {sheet.title}")


class LinkImporter(WorksheetImporter):
    """
    Create links from Links worksheets.

    A link whose name is already taken replaces the existing object. The
    staged vertices are passed in explicitly, so Vertices sheets must be
    collected before links are imported.
    """

    kind = LINKS_PREFIX

    def __init__(self, model, log: ImportLog, report: ImportReport,
                 vertices: VertexStaging,
                 coder: Optional[PropertyValueCoder] = None,
                 network_class: str = DEFAULT_NETWORK_CLASS):
        super().__init__(model, log, report, coder)
        self.vertices = vertices
        self.network_class = network_class

    def import_sheet(self, sheet) -> SheetReport:
        self._headers = self.header_map(sheet, PROPERTY_COLUMN)
        return super().import_sheet(sheet)

    def _import_row(self, sheet, row: int, sheet_report: SheetReport) -> RowOutcome:
        marker = f"Sheet={sheet.title} Row={row}"

        required = {}
        for label, column in (('ClassName', CLASS_NAME_COLUMN), ('LinkName', LINK_NAME_COLUMN),
                              ('FromNodeName', FROM_NODE_COLUMN), ('ToNodeName', TO_NODE_COLUMN)):
            required[label] = cell_text(sheet, row, column)
            if not required[label]:
                self._diagnose(sheet_report, f"{marker}: Invalid {label}={required[label]}")
                return RowOutcome.SKIP_ROW

        class_name = required['ClassName']
        link_name = required['LinkName']

        from_node = self._find_node(required['FromNodeName'])
        if from_node is None:
            self._diagnose(sheet_report, f"{marker}: Cannot find 'from' node name {required['FromNodeName']}",
                           LogSeverity.ERROR)
            return RowOutcome.ABORT_SHEET

        to_node = self._find_node(required['ToNodeName'])
        if to_node is None:
            self._diagnose(sheet_report, f"{marker}: Cannot find 'to' node name {required['ToNodeName']}",
                           LogSeverity.ERROR)
            return RowOutcome.ABORT_SHEET

        existing = self.model.find_object(link_name)
        if existing is not None:
            self.model.remove_object(existing)
            sheet_report.updated += 1
        else:
            sheet_report.added += 1

        link = self.model.create_link(class_name, from_node, to_node, self.vertices.for_link(link_name))
        if link is None:
            self._diagnose(sheet_report, f"{marker}: Cannot create Link with className={class_name}",
                           LogSeverity.ERROR)
            return RowOutcome.ABORT_SHEET
        self.model.rename_object(link, link_name)

        network_name = cell_text(sheet, row, NETWORK_NAME_COLUMN)
        if not network_name:
            # The link stays in the model, just without a network or properties
            self._diagnose(sheet_report, f"{marker}: Null NetworkName")
            return RowOutcome.CONTINUE

        self._get_or_create_network(network_name).add(link)

        # A failed assignment leaves the rest of this row's properties unset
        self.apply_properties(sheet, row, link, self._headers, sheet_report, stop_on_failure=True)
        return RowOutcome.CONTINUE

    def _find_node(self, name: str):
        obj = self.model.find_object(name)
        if obj is None or not obj.is_node:
            return None
        return obj

    def _get_or_create_network(self, name: str) -> NetworkElement:
        """Network element with the given name, created if missing."""
        element = self.model.find_element(name)
        if element is None:
            element = self.model.create_element(self.network_class)
            self.model.rename_element(element, name)
            logger.debug(f"Created network {name}")
        return element

    def _sheet_done(self, sheet, sheet_report: SheetReport):
        self.log.info(
            f"Added {sheet_report.added} links and deleted and re-added "
            f"{sheet_report.updated} existing links"
        )
