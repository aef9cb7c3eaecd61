"""Tests for file exports and the shared drawing geometry."""

import pytest

pytest.importorskip("cairo")

from mindline.document import ROOT_NODE_ID, ConnectorStyle, NodeStyle  # noqa: E402
from mindline.export import MindMapExporter, export_filename  # noqa: E402
from mindline.layout import add_child  # noqa: E402
from mindline.render import (  # noqa: E402
    NODE_HEIGHT,
    ROOT_NODE_HEIGHT,
    bounds,
    build_boxes,
    node_size,
)
from mindline.tree_store import new_document  # noqa: E402


@pytest.fixture
def doc():
    document = new_document("Central Topic")
    a = add_child(document, ROOT_NODE_ID, "Branch")
    add_child(document, a, "Leaf")
    b = add_child(document, ROOT_NODE_ID, "Other")
    document.nodes[b].style = NodeStyle.UNDERLINE
    document.connector_style = ConnectorStyle.CURVED
    return document


class TestGeometry:
    def test_boxes_cover_visible_nodes(self, doc):
        branch = doc.root.children_ids[0]
        doc.nodes[branch].is_collapsed = True
        boxes = build_boxes(doc)
        assert [b.node.text for b in boxes] == ["Central Topic", "Branch", "Other"]

    def test_boxes_are_centred_on_position(self, doc):
        for box in build_boxes(doc):
            assert (box.cx, box.cy) == (box.node.position.x, box.node.position.y)

    def test_root_is_taller(self, doc):
        assert node_size(doc.root)[1] == ROOT_NODE_HEIGHT
        assert node_size(doc.children(ROOT_NODE_ID)[0])[1] == NODE_HEIGHT

    def test_hit_testing(self, doc):
        box = build_boxes(doc)[0]
        assert box.contains_point(box.cx, box.cy)
        assert not box.contains_point(box.x - 1, box.cy)
        assert box.indicator_contains(box.x + box.width - 16, box.cy)

    def test_bounds(self, doc):
        assert bounds([]) is None
        min_x, min_y, max_x, max_y = bounds(build_boxes(doc))
        assert min_x < doc.root.position.x < max_x
        assert min_y < doc.root.position.y < max_y


class TestExporter:
    def test_png(self, doc, tmp_path):
        target = tmp_path / "map.png"
        assert MindMapExporter().export_png(doc, str(target)) is True
        assert target.read_bytes().startswith(b"\x89PNG")

    def test_pdf(self, doc, tmp_path):
        target = tmp_path / "map.pdf"
        assert MindMapExporter().export_pdf(doc, str(target), page_size="Letter") is True
        assert target.read_bytes().startswith(b"%PDF")

    def test_outline_file_includes_collapsed_branches(self, doc, tmp_path):
        doc.nodes[doc.root.children_ids[0]].is_collapsed = True
        target = tmp_path / "map.md"
        assert MindMapExporter().export_outline_file(doc, str(target)) is True
        assert target.read_text(encoding="utf-8") == (
            "- Central Topic\n  - Branch\n    - Leaf\n  - Other {style:underline}\n"
        )

    def test_empty_document_is_not_exported(self, tmp_path):
        empty = new_document()
        empty.nodes.clear()
        exporter = MindMapExporter()
        assert exporter.export_png(empty, str(tmp_path / "x.png")) is False
        assert exporter.export_pdf(empty, str(tmp_path / "x.pdf")) is False
        assert exporter.export_outline_file(empty, str(tmp_path / "x.md")) is False


def test_export_filename(doc):
    assert export_filename(doc, "png") == "Central_Topic.png"
    doc.nodes.clear()
    assert export_filename(doc, "pdf") == "mindmap.pdf"
