"""
Name labeling core: template parsing, font measurement, page stamping and
merging of per-recipient copies into one output PDF.

Every recipient gets a working copy re-parsed from the pristine template bytes.
The copy is stamped, serialized on its own, and its pages are copied into a
single output writer. Output block i (pages [i*P, (i+1)*P)) belongs to name i.
"""

from __future__ import annotations

import hashlib
import io
from typing import Callable, Iterable, Sequence

from pypdf import PdfReader, PdfWriter
from pypdf._page import PageObject
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

LABEL_SIZE = 12.0
LABEL_RIGHT_MARGIN = 16.0
LABEL_TOP_OFFSET = LABEL_SIZE * 2
LABEL_COLOR = (0.0, 0.0, 0.0)

ProgressCallback = Callable[[int, int], None]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LabelerError(Exception):
    """Base error. `stage` names the pipeline step, `index` the recipient."""

    stage = "label"

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index

    @property
    def context(self) -> str:
        if self.index is None:
            return f"stage={self.stage}"
        return f"stage={self.stage}, recipient={self.index + 1}"


class TemplateParseError(LabelerError):
    stage = "template"


class FontParseError(LabelerError):
    stage = "font"


class StampError(LabelerError):
    stage = "stamp"


class MergeError(LabelerError):
    stage = "merge"


class FinalizeError(LabelerError):
    stage = "finalize"


# ---------------------------------------------------------------------------
# Font
# ---------------------------------------------------------------------------


class FontResource:
    """A parsed TrueType font registered with reportlab under a content-derived name."""

    def __init__(self, ttfont: TTFont) -> None:
        self._ttfont = ttfont

    @classmethod
    def load(cls, font_bytes: bytes) -> "FontResource":
        if not font_bytes:
            raise FontParseError("Font data is empty.")
        font_name = "LabelFont-" + hashlib.sha1(font_bytes).hexdigest()[:12]
        if font_name in pdfmetrics.getRegisteredFontNames():
            return cls(pdfmetrics.getFont(font_name))
        try:
            ttfont = TTFont(font_name, io.BytesIO(font_bytes))
        except Exception as exc:
            raise FontParseError(f"Font data is not a usable TrueType font: {exc}") from exc
        pdfmetrics.registerFont(ttfont)
        return cls(ttfont)

    @property
    def name(self) -> str:
        return self._ttfont.fontName

    def measure_width(self, text: str, size: float) -> float:
        return float(self._ttfont.stringWidth(text, size))


# ---------------------------------------------------------------------------
# Template and working copies
# ---------------------------------------------------------------------------


def _page_size(page: PageObject) -> tuple[float, float]:
    return float(page.mediabox.width), float(page.mediabox.height)


def _read_pdf(pdf_bytes: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes), strict=True)
        if reader.is_encrypted:
            raise TemplateParseError("Template PDF is encrypted.")
        if len(reader.pages) == 0:
            raise TemplateParseError("Template PDF has no pages.")
    except TemplateParseError:
        raise
    except Exception as exc:
        raise TemplateParseError(f"Template PDF could not be parsed: {exc}") from exc
    return reader


class WorkingCopy:
    """Mutable, independent copy of the template scoped to one recipient."""

    def __init__(self, writer: PdfWriter) -> None:
        self._writer = writer

    @property
    def pages(self) -> list[PageObject]:
        return list(self._writer.pages)

    def page_count(self) -> int:
        return len(self._writer.pages)

    def page_size(self, page_index: int) -> tuple[float, float]:
        return _page_size(self._writer.pages[page_index])

    def to_bytes(self) -> bytes:
        out = io.BytesIO()
        self._writer.write(out)
        return out.getvalue()


class TemplateDocument:
    def __init__(self, pdf_bytes: bytes, reader: PdfReader) -> None:
        self._pdf_bytes = bytes(pdf_bytes)
        self._sizes = [_page_size(page) for page in reader.pages]

    @classmethod
    def parse(cls, pdf_bytes: bytes) -> "TemplateDocument":
        if not pdf_bytes:
            raise TemplateParseError("Template PDF is empty.")
        return cls(pdf_bytes, _read_pdf(pdf_bytes))

    def page_count(self) -> int:
        return len(self._sizes)

    def page_size(self, page_index: int) -> tuple[float, float]:
        if page_index < 0 or page_index >= len(self._sizes):
            raise IndexError(f"Page {page_index} out of range. Template has {len(self._sizes)} page(s).")
        return self._sizes[page_index]

    def clone_working_copy(self) -> WorkingCopy:
        # Re-parse from the pristine bytes so no object is shared between copies.
        reader = _read_pdf(self._pdf_bytes)
        try:
            writer = PdfWriter(clone_from=reader)
        except Exception as exc:
            raise TemplateParseError(f"Template PDF could not be copied: {exc}") from exc
        return WorkingCopy(writer)


# ---------------------------------------------------------------------------
# Stamping
# ---------------------------------------------------------------------------


def label_origin(name: str, page_w: float, page_h: float, font: FontResource) -> tuple[float, float]:
    """Baseline start of the label. Negative x means the name overflows the left edge."""
    text_w = font.measure_width(name, LABEL_SIZE)
    return page_w - text_w - LABEL_RIGHT_MARGIN, page_h - LABEL_TOP_OFFSET


def label_overflows(name: str, page_w: float, font: FontResource) -> bool:
    return font.measure_width(name, LABEL_SIZE) > page_w - LABEL_RIGHT_MARGIN


def draw_label_overlay(name: str, page_w: float, page_h: float, font: FontResource) -> bytes:
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=(page_w, page_h), invariant=1)
    x, y = label_origin(name, page_w, page_h, font)
    c.setFillColor(Color(*LABEL_COLOR))
    c.setFont(font.name, LABEL_SIZE)
    c.drawString(x, y, name)
    c.showPage()
    c.save()
    return packet.getvalue()


def stamp_document(document: WorkingCopy, name: str, font: FontResource) -> None:
    """Draw `name` in the top-right corner of every page of `document`."""
    overlays: dict[tuple[float, float], PageObject] = {}
    try:
        for page in document.pages:
            size = _page_size(page)
            overlay = overlays.get(size)
            if overlay is None:
                overlay_bytes = draw_label_overlay(name, size[0], size[1], font)
                overlay = PdfReader(io.BytesIO(overlay_bytes)).pages[0]
                overlays[size] = overlay
            page.merge_page(overlay)
    except Exception as exc:
        raise StampError(f"Could not stamp label {name!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


class DocumentMerger:
    """Ordered accumulator of pages copied out of stamped working copies."""

    def __init__(self) -> None:
        self._writer = PdfWriter()
        self._finalized = False

    def page_count(self) -> int:
        return len(self._writer.pages)

    def append_pages(self, source: WorkingCopy, page_indices: Sequence[int]) -> None:
        if self._finalized:
            raise MergeError("Cannot append pages after the output was finalized.")
        if any(page_index < 0 for page_index in page_indices):
            raise MergeError(f"Page indices must not be negative: {list(page_indices)}")
        try:
            # Copy from a serialized snapshot so the source can change or go away.
            snapshot = PdfReader(io.BytesIO(source.to_bytes()))
            for page_index in page_indices:
                self._writer.add_page(snapshot.pages[page_index])
        except Exception as exc:
            raise MergeError(f"Could not copy pages {list(page_indices)}: {exc}") from exc

    def finalize(self) -> bytes:
        if self._finalized:
            raise FinalizeError("Output was already finalized.")
        self._finalized = True
        out = io.BytesIO()
        try:
            self._writer.write(out)
        except Exception as exc:
            raise FinalizeError(f"Could not serialize output PDF: {exc}") from exc
        return out.getvalue()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def parse_name_list(text: str, skip_blank: bool = False) -> list[str]:
    names = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if skip_blank:
        names = [name for name in names if name.strip()]
    return names


def label_documents(
    template_bytes: bytes,
    font_bytes: bytes,
    names: Iterable[str],
    on_progress: ProgressCallback | None = None,
) -> bytes:
    """Build one merged PDF holding a labeled copy of the template per name."""
    template = TemplateDocument.parse(template_bytes)
    font = FontResource.load(font_bytes)
    names = list(names)
    total = len(names)

    page_indices = list(range(template.page_count()))
    merger = DocumentMerger()

    for index, name in enumerate(names):
        try:
            working_copy = template.clone_working_copy()
            stamp_document(working_copy, name, font)
            merger.append_pages(working_copy, page_indices)
        except LabelerError as exc:
            exc.index = index
            raise
        if on_progress is not None:
            on_progress(index + 1, total)

    return merger.finalize()
