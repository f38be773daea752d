import io
from pathlib import Path

import pytest
import reportlab
from reportlab.lib.pagesizes import A4, letter
from reportlab.pdfgen import canvas

FONTS_DIR = Path(reportlab.__file__).resolve().parent / "fonts"


def make_template(page_sizes: list[tuple[float, float]]) -> bytes:
    """Build a template PDF with one 'Page N' line in the middle of each page."""
    packet = io.BytesIO()
    c = canvas.Canvas(packet, invariant=1)
    for idx, (w, h) in enumerate(page_sizes, start=1):
        c.setPageSize((w, h))
        c.setFont("Helvetica", 14)
        c.drawString(72, h / 2, f"Page {idx}")
        c.showPage()
    c.save()
    return packet.getvalue()


@pytest.fixture
def font_bytes() -> bytes:
    return (FONTS_DIR / "Vera.ttf").read_bytes()


@pytest.fixture
def other_font_bytes() -> bytes:
    return (FONTS_DIR / "VeraBd.ttf").read_bytes()


@pytest.fixture
def template_bytes() -> bytes:
    return make_template([letter, letter])


@pytest.fixture
def mixed_template_bytes() -> bytes:
    return make_template([letter, A4, (300.0, 200.0)])
