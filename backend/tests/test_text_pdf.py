"""Tests for the FPDF text-only renderer."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest
from pypdf import PdfReader

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from pdf_settings import LayoutOptions  # noqa: E402
from text_pdf import TextPdfGenerator, extract_text_blocks, length_to_mm  # noqa: E402

DOCUMENT = """<!DOCTYPE html>
<html><head><title>Payment Receipt</title><style>p { color: red; }</style></head>
<body>
  <h1>Payment Receipt</h1>
  <p>Amount: <strong>₹1,500.00</strong></p>
  <ul><li>First item</li><li>Second item</li></ul>
  <script>console.log("ignored")</script>
</body></html>"""


def test_extract_text_blocks_skips_non_content() -> None:
    """Head, style and script content never reach the text flow."""

    title, blocks = extract_text_blocks(DOCUMENT)

    text = " ".join(block.text for block in blocks)
    assert title == "Payment Receipt"
    assert "color: red" not in text
    assert "ignored" not in text
    assert [block.kind for block in blocks] == ["heading", "paragraph", "item", "item"]
    assert blocks[0].level == 1
    assert any(run.bold and "1,500.00" in run.text for run in blocks[1].runs)
    assert [block.marker for block in blocks[2:]] == ["- ", "- "]


def test_ordered_lists_and_table_rows() -> None:
    """Ordered items are numbered and table cells share one line."""

    _, blocks = extract_text_blocks(
        "<ol><li>One</li><li>Two</li></ol>"
        "<table><tr><td class=\"label\">Amount</td><td>500</td></tr></table>"
    )

    assert [block.marker for block in blocks[:2]] == ["1. ", "2. "]
    row = blocks[2]
    assert row.kind == "row"
    assert row.text == "Amount  |  500"
    assert row.runs[0].bold


def test_length_to_mm() -> None:
    """CSS lengths convert to millimetres."""

    assert length_to_mm("10mm") == 10.0
    assert length_to_mm("1in") == 25.4
    assert length_to_mm("96") == pytest.approx(25.4)
    assert length_to_mm("auto", default=7.0) == 7.0


def test_text_pdf_renders_letterhead_and_rupee_sign() -> None:
    """The output is a readable PDF with latin-1 safe text."""

    generator = TextPdfGenerator(letterhead="Bihar Ophthalmic Association")

    data = generator.render(DOCUMENT, LayoutOptions(page_format="A5"))

    reader = PdfReader(io.BytesIO(data))
    text = "".join(page.extract_text() or "" for page in reader.pages)
    assert data.startswith(b"%PDF")
    assert "Bihar Ophthalmic Association" in text
    assert "Rs.1,500.00" in text
    assert reader.metadata.title == "Payment Receipt"


def test_text_pdf_handles_empty_body() -> None:
    """A document without text still produces one page."""

    data = TextPdfGenerator().render("<html><head><title>Blank</title></head><body></body></html>", LayoutOptions())

    assert len(PdfReader(io.BytesIO(data)).pages) == 1
