"""
Tests for staging vertices and importing Links worksheets.
"""

from backend.models.facility import FacilityLocation
from services.import_log import LogSeverity
from services.link_import_service import LinkImporter, Vertex, VertexCollector, VertexStaging
from tests.conftest import LINK_HEADER, VERTEX_HEADER


def links_sheet(make_workbook, *rows, title='Links', extra_headers=()):
    workbook = make_workbook({title: [LINK_HEADER + list(extra_headers)] + list(rows)})
    return workbook[title]


class TestVertexCollector:
    """Test staging vertices from Vertices worksheets."""

    def test_bad_row_stops_sheet(self, model, log, report, make_workbook):
        sheet = make_workbook({'Vertices': [
            VERTEX_HEADER,
            ['L1', 0, 0, 0],
            ['L1', 1, 0, 0],
            ['BAD', 2, 'notanumber', 0],
            ['L1', 3, 0, 0],
        ]})['Vertices']

        staging = VertexCollector(model, log, report).collect([sheet])

        assert list(staging) == [Vertex('L1', 0, 0, 0), Vertex('L1', 1, 0, 0)]
        assert report.sheet('Vertices').aborted_at_row == 4
        assert 'Sheet=Vertices Row=4: Bad Vertex Coordinate' in log.messages()

    def test_empty_link_name_stops_sheet(self, model, log, report, make_workbook):
        sheet = make_workbook({'Vertices': [
            VERTEX_HEADER,
            [None, 0, 0, 0],
            ['L1', 1, 0, 0],
        ]})['Vertices']

        staging = VertexCollector(model, log, report).collect([sheet])

        assert len(staging) == 0
        assert report.sheet('Vertices').aborted_at_row == 2

    def test_collects_across_sheets_in_order(self, model, log, report, make_workbook):
        workbook = make_workbook({
            'Vertices-A': [VERTEX_HEADER, ['L1', 0, 0, 0], ['L2', 5, 5, 5], ['oops']],
            'Vertices-B': [VERTEX_HEADER, ['L1', 1, 1, 1]],
        })

        staging = VertexCollector(model, log, report).collect(workbook.worksheets)

        assert staging.for_link('L1') == [FacilityLocation(0, 0, 0), FacilityLocation(1, 1, 1)]
        assert staging.for_link('L2') == [FacilityLocation(5, 5, 5)]
        assert report.vertices_staged == 3

    def test_unknown_link_has_no_vertices(self):
        staging = VertexStaging([Vertex('L1', 0, 0, 0)])

        assert staging.for_link('L9') == []


class TestLinkCreation:
    """Test creating links between nodes."""

    def test_creates_link_with_vertices_and_network(self, model, log, report, node_pair, make_workbook):
        vertices = VertexStaging([
            Vertex('P1', 2, 1, 0), Vertex('Other', 9, 9, 9), Vertex('P1', 4, 1, 0),
        ])
        sheet = links_sheet(make_workbook, ['Path', 'P1', 'N1', 'N2', 'Main'])

        sheet_report = LinkImporter(model, log, report, vertices).import_sheet(sheet)

        link = model.find_object('P1')
        assert link.is_link
        assert link.from_node is node_pair[0]
        assert link.to_node is node_pair[1]
        assert link.vertices == [FacilityLocation(2, 1, 0), FacilityLocation(4, 1, 0)]
        assert [n.name for n in link.networks] == ['Main']
        assert model.find_element('Main').links == [link]
        assert model.graph.has_edge(node_pair[0], node_pair[1], key=link)
        assert (sheet_report.added, sheet_report.updated) == (1, 0)

    def test_reimport_replaces_link(self, model, log, report, node_pair, make_workbook):
        row = ['Path', 'P1', 'N1', 'N2', 'Main']

        LinkImporter(model, log, report, VertexStaging()).import_sheet(links_sheet(make_workbook, row))
        original = model.find_object('P1')
        second = LinkImporter(model, log, report, VertexStaging()).import_sheet(links_sheet(make_workbook, row))

        replacement = model.find_object('P1')
        assert replacement is not original
        assert model.links == [replacement]
        assert model.find_element('Main').links == [replacement]
        assert model.graph.number_of_edges() == 1
        assert (second.added, second.updated) == (0, 1)

    def test_network_is_created_once(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', 'N1', 'N2', 'Main'],
            ['Path', 'P2', 'N2', 'N1', 'Main'],
        )

        LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert [e.name for e in model.elements] == ['Main']
        assert [link.name for link in model.find_element('Main').links] == ['P1', 'P2']

    def test_missing_network_keeps_link_unnetworked(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', 'N1', 'N2', None, 5],
            extra_headers=['SpeedLimit'],
        )

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        link = model.find_object('P1')
        assert link is not None
        assert link.networks == []
        assert link.find_property('SpeedLimit').value is None
        assert sheet_report.added == 1
        assert 'Sheet=Links Row=2: Null NetworkName' in log.messages()


class TestLinkRowFailures:
    """Test the skip and abort rules for Links rows."""

    def test_missing_required_field_skips_row(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', None, 'N2', 'Main'],
            ['Path', 'P2', 'N1', 'N2', 'Main'],
        )

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert model.find_object('P1') is None
        assert model.find_object('P2') is not None
        assert sheet_report.skipped == 1
        assert 'Sheet=Links Row=2: Invalid FromNodeName=None' in log.messages()

    def test_unknown_node_aborts_sheet_not_run(self, model, log, report, node_pair, make_workbook):
        workbook = make_workbook({
            'Links-A': [LINK_HEADER, ['Path', 'P1', 'Nowhere', 'N2', 'Main'], ['Path', 'P2', 'N1', 'N2', 'Main']],
            'Links-B': [LINK_HEADER, ['Path', 'P3', 'N2', 'N1', 'Main']],
        })

        reports = LinkImporter(model, log, report, VertexStaging()).import_sheets(workbook.worksheets)

        assert model.find_object('P2') is None
        assert model.find_object('P3') is not None
        assert reports[0].aborted_at_row == 2
        assert reports[1].added == 1
        assert "Sheet=Links-A Row=2: Cannot find 'from' node name Nowhere" in log.messages()

    def test_unknown_to_node_aborts_sheet(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', 'N1', 'Elsewhere', 'Main'],
            ['Path', 'P2', 'N1', 'N2', 'Main'],
        )

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert model.find_object('P1') is None
        assert model.find_object('P2') is None
        assert sheet_report.aborted_at_row == 2
        assert "Sheet=Links Row=2: Cannot find 'to' node name Elsewhere" in log.messages(LogSeverity.ERROR)

    def test_endpoint_must_be_a_node(self, model, log, report, node_pair, make_workbook):
        server = model.create_object('Server', FacilityLocation())
        model.rename_object(server, 'Drill')
        sheet = links_sheet(make_workbook, ['Path', 'P1', 'N1', 'Drill', 'Main'])

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert model.find_object('P1') is None
        assert sheet_report.aborted

    def test_link_creation_failure_aborts_sheet(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Server', 'P1', 'N1', 'N2', 'Main'],
            ['Path', 'P2', 'N1', 'N2', 'Main'],
        )

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert model.find_object('P1') is None
        assert model.find_object('P2') is None
        assert sheet_report.aborted_at_row == 2
        assert any('Cannot create Link' in d for d in sheet_report.diagnostics)


class TestLinkProperties:
    """Test property columns on Links sheets."""

    def test_properties_applied(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', 'N1', 'N2', 'Main', 2.5, 'False'],
            extra_headers=['speedlimit', 'AllowPassing'],
        )

        LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        link = model.find_object('P1')
        assert link.find_property('SpeedLimit').value == '2.5'
        assert link.find_property('AllowPassing').value == 'False'

    def test_failure_stops_rest_of_row_only(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(
            make_workbook,
            ['Path', 'P1', 'N1', 'N2', 'Main', 'fast', 'False'],
            ['Path', 'P2', 'N2', 'N1', 'Main', 3, 'False'],
            extra_headers=['SpeedLimit', 'AllowPassing'],
        )

        sheet_report = LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        first = model.find_object('P1')
        second = model.find_object('P2')
        assert first.find_property('AllowPassing').value == 'True'
        assert second.find_property('SpeedLimit').value == '3'
        assert second.find_property('AllowPassing').value == 'False'
        assert sheet_report.added == 2
        assert not sheet_report.aborted

    def test_counts_logged_after_sheet(self, model, log, report, node_pair, make_workbook):
        sheet = links_sheet(make_workbook, ['Path', 'P1', 'N1', 'N2', 'Main'])

        LinkImporter(model, log, report, VertexStaging()).import_sheet(sheet)

        assert log.messages()[-1] == 'Added 1 links and deleted and re-added 0 existing links'
