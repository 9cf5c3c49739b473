"""
Pytest configuration and fixtures for facility import tests.
"""

import pytest
from openpyxl import Workbook

from backend.models.facility import FacilityLocation, FacilityModel
from services.import_log import ImportLog
from services.import_report import ImportReport

OBJECT_HEADER = ['ClassName', 'ItemName', 'X', 'Y', 'Z', 'Length', 'Width', 'Height']
LINK_HEADER = ['ClassName', 'LinkName', 'FromNode', 'ToNode', 'NetworkName']
VERTEX_HEADER = ['LinkName', 'X', 'Y', 'Z']


def build_workbook(sheets):
    """
    Build an in-memory workbook.

    Args:
        sheets: Mapping of sheet title -> list of rows (row 1 is the header)
    """
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(list(row))
    return workbook


@pytest.fixture
def make_workbook():
    """Factory fixture returning build_workbook."""
    return build_workbook


@pytest.fixture
def model():
    """Empty facility model with the default class library."""
    return FacilityModel(name='Test')


@pytest.fixture
def log():
    """In-memory import log."""
    return ImportLog()


@pytest.fixture
def report():
    return ImportReport(source='test')


@pytest.fixture
def node_pair(model):
    """Two transfer nodes, N1 at the origin and N2 at (10, 0, 0)."""
    first = model.create_object('TransferNode', FacilityLocation(0, 0, 0))
    model.rename_object(first, 'N1')
    second = model.create_object('TransferNode', FacilityLocation(10, 0, 0))
    model.rename_object(second, 'N2')
    return first, second


@pytest.fixture
def layout_sheets():
    """Sheets for a small but complete layout: objects, vertices and links."""
    return {
        'Objects': [
            OBJECT_HEADER + ['InitialCapacity', 'ProcessingTime'],
            ['Source', 'Arrivals', 0, 0, 0, None, None, None],
            ['Server', 'Drill', 20, 0, 0, 3, 2, 1, 2, 'Random.Triangular(1,2,3)'],
            ['Sink', 'Exit', 40, 0, 0],
            ['TransferNode', 'Junction', 30, 10, 0],
        ],
        'Vertices': [
            VERTEX_HEADER,
            ['P1', 5, 5, 0],
            ['P1', 10, 5, 0],
            ['P3', 35, 10, 0],
        ],
        'Links': [
            LINK_HEADER + ['SpeedLimit'],
            ['Path', 'P1', 'Output@Arrivals', 'Input@Drill', 'Main', 2.5],
            ['Path', 'P2', 'Output@Drill', 'Junction', 'Main'],
            ['Conveyor', 'P3', 'Junction', 'Input@Exit', 'Line'],
        ],
        'Notes': [
            ['free text'],
        ],
    }
