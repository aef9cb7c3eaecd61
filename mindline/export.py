"""Export functionality for Mindline mindmaps."""

import logging
from datetime import datetime
from pathlib import Path

import cairo

from mindline.database import get_data_dir
from mindline.document import Document
from mindline.outline import export_outline
from mindline.render import COLORS, bounds, build_boxes, draw_document


logger = logging.getLogger(__name__)

# Page sizes in points (72 points = 1 inch)
PAGE_SIZES = {
    "A4": (595, 842),
    "Letter": (612, 792),
    "Auto": None,
}


def export_filename(doc: Document, extension: str) -> str:
    """Download name derived from the root text, e.g. ``Central_Topic.png``."""
    root = doc.root
    stem = root.text.replace(" ", "_") if root is not None and root.text else "mindmap"
    return f"{stem}.{extension}"


class MindMapExporter:
    """Handles exporting mindmaps to various formats.

    Exports draw what the canvas shows: visible nodes at their document
    positions, joined with the document's connector style.
    """

    PADDING = 50

    def export_png(self, doc: Document, filepath: str,
                   scale: float = 2.0, transparent: bool = False) -> bool:
        """Export mindmap to PNG image."""
        boxes = build_boxes(doc)
        box_bounds = bounds(boxes)
        if box_bounds is None:
            return False
        min_x, min_y, max_x, max_y = box_bounds

        width = int((max_x - min_x + self.PADDING * 2) * scale)
        height = int((max_y - min_y + self.PADDING * 2) * scale)

        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, width, height)
        cr = cairo.Context(surface)
        cr.scale(scale, scale)
        cr.translate(-min_x + self.PADDING, -min_y + self.PADDING)

        if not transparent:
            cr.set_source_rgb(*COLORS['bg_primary'])
            cr.paint()

        draw_document(cr, doc, boxes)
        surface.write_to_png(filepath)
        logger.info("Exported PNG %s (%dx%d)", filepath, width, height)
        return True

    def export_pdf(self, doc: Document, filepath: str, page_size: str = "A4") -> bool:
        """Export mindmap to PDF, scaled to fit the page."""
        boxes = build_boxes(doc)
        box_bounds = bounds(boxes)
        if box_bounds is None:
            return False
        min_x, min_y, max_x, max_y = box_bounds

        map_width = max_x - min_x + self.PADDING * 2
        map_height = max_y - min_y + self.PADDING * 2
        page = PAGE_SIZES.get(page_size, PAGE_SIZES["A4"])
        if page is None:
            width, height, scale = map_width, map_height, 1.0
        else:
            width, height = page
            scale = min((width - 40) / map_width, (height - 40) / map_height, 1.0)

        surface = cairo.PDFSurface(filepath, width, height)
        surface.set_metadata(cairo.PDF_METADATA_TITLE, doc.root.text)
        surface.set_metadata(cairo.PDF_METADATA_CREATE_DATE, datetime.now().isoformat())
        cr = cairo.Context(surface)

        cr.set_source_rgb(*COLORS['bg_primary'])
        cr.paint()

        cr.translate(width / 2, height / 2)
        cr.scale(scale, scale)
        cr.translate(-(min_x + max_x) / 2, -(min_y + max_y) / 2)

        draw_document(cr, doc, boxes)
        surface.finish()
        logger.info("Exported PDF %s", filepath)
        return True

    def export_outline_file(self, doc: Document, filepath: str) -> bool:
        """Write the outline text (``.md``), collapsed branches included."""
        text = export_outline(doc)
        if not text:
            return False
        Path(filepath).write_text(text, encoding="utf-8")
        logger.info("Exported outline %s", filepath)
        return True


def get_export_dir() -> Path:
    """Get the default export directory."""
    export_dir = get_data_dir() / "exports"
    export_dir.mkdir(exist_ok=True)
    return export_dir
