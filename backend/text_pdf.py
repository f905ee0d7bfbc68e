"""Text-only PDF generation with FPDF, used when Chromium is unavailable.

The document is flattened into blocks (headings, paragraphs, list items and
table rows) made of styled runs.  CSS layout is dropped; the reading order
and emphasis survive.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

from fpdf import FPDF

from pdf_settings import LayoutOptions

_MM_PER_UNIT = {"mm": 1.0, "cm": 10.0, "in": 25.4, "pt": 25.4 / 72.0, "px": 25.4 / 96.0}
_LENGTH_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(mm|cm|in|pt|px)?\s*$", re.IGNORECASE)
_PAGE_SIZES_MM = {
    "a3": (297.0, 420.0),
    "a4": (210.0, 297.0),
    "a5": (148.0, 210.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
    "tabloid": (279.4, 431.8),
}
_MIN_MARGIN_MM = 10.0
_LATIN1_REPLACEMENTS = {
    "\u20b9": "Rs.",
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u2013": "-",
    "\u2014": "-",
    "\u2022": "-",
    "\u2026": "...",
    "\xa0": " ",
}
# Classes the built-in templates use for labels and titles.
_BOLD_CLASSES = {"section-title", "field-label", "boa-title", "seminar-title", "label"}

_HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 4, "h6": 4}
_BLOCK_TAGS = {"p", "div", "section", "article", "header", "footer", "table", "tbody", "thead", "tfoot", "ul", "ol"}
_SKIPPED_TAGS = {"head", "style", "script", "noscript", "template"}


def length_to_mm(value: Optional[str], default: float = 0.0) -> float:
    """``"10mm"`` -> ``10.0``; bare numbers are CSS pixels."""
    match = _LENGTH_RE.match(str(value or ""))
    if not match:
        return default
    return float(match.group(1)) * _MM_PER_UNIT[(match.group(2) or "px").lower()]


def latin1(text: str) -> str:
    """Map common typography onto the core fonts' latin-1 repertoire."""
    for source, target in _LATIN1_REPLACEMENTS.items():
        text = text.replace(source, target)
    return text.encode("latin-1", errors="replace").decode("latin-1")


@dataclass
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False

    @property
    def style(self) -> str:
        return ("B" if self.bold else "") + ("I" if self.italic else "")


@dataclass
class TextBlock:
    kind: str  # heading, paragraph, item, row
    runs: List[TextRun] = field(default_factory=list)
    level: int = 0
    marker: str = ""

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs).strip()


def _emphasis(tag: str, attrs: Dict[str, str]) -> Tuple[bool, bool]:
    style = (attrs.get("style") or "").lower().replace(" ", "")
    classes = set((attrs.get("class") or "").lower().split())
    bold = (
        tag in ("b", "strong", "th")
        or bool(re.search(r"font-weight:(bold|[6-9]00)", style))
        or bool(classes & _BOLD_CLASSES)
    )
    italic = tag in ("i", "em") or bool(re.search(r"font-style:(italic|oblique)", style))
    return bold, italic


class _DocumentTextParser(HTMLParser):
    """Collects ``TextBlock`` objects from an HTML document."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title = ""
        self.blocks: List[TextBlock] = []
        self._current: Optional[TextBlock] = None
        self._skip = 0
        self._in_title = False
        self._emphasis: List[Tuple[str, bool, bool]] = []
        self._lists: List[List[int]] = []  # [is_ordered, counter]

    # Block management ----------------------------------------------------
    def _flush(self) -> None:
        if self._current is not None and self._current.text:
            self.blocks.append(self._current)
        self._current = None

    def _open(self, kind: str, level: int = 0, marker: str = "") -> None:
        self._flush()
        self._current = TextBlock(kind=kind, level=level, marker=marker)

    def _bold(self) -> bool:
        return any(b for _, b, _ in self._emphasis) or (self._current is not None and self._current.kind == "heading")

    def _italic(self) -> bool:
        return any(i for _, _, i in self._emphasis)

    # HTMLParser hooks ----------------------------------------------------
    def handle_starttag(self, tag, attrs):
        tag = tag.lower()
        if tag == "title":
            self._in_title = True
            return
        if tag in _SKIPPED_TAGS:
            self._skip += 1
            return
        if self._skip:
            return

        if tag in _HEADINGS:
            self._open("heading", level=_HEADINGS[tag])
        elif tag in ("ul", "ol"):
            self._flush()
            self._lists.append([1 if tag == "ol" else 0, 1])
        elif tag == "li":
            marker = "- "
            if self._lists and self._lists[-1][0]:
                marker = f"{self._lists[-1][1]}. "
                self._lists[-1][1] += 1
            self._open("item", level=len(self._lists), marker=marker)
        elif tag == "tr":
            self._open("row")
        elif tag in ("td", "th"):
            if self._current is None:
                self._open("row")
            elif self._current.kind == "row" and self._current.runs:
                self._current.runs.append(TextRun("  |  "))
        elif tag in _BLOCK_TAGS:
            self._open("paragraph")
        elif tag in ("br", "hr"):
            kind = self._current.kind if self._current is not None else "paragraph"
            self._open(kind)
            return

        if tag not in ("br", "hr", "img", "meta", "link", "input"):
            self._emphasis.append((tag,) + _emphasis(tag, {k.lower(): v or "" for k, v in attrs}))

    def handle_endtag(self, tag):
        tag = tag.lower()
        if tag == "title":
            self._in_title = False
            return
        if tag in _SKIPPED_TAGS:
            self._skip = max(0, self._skip - 1)
            return
        if self._skip:
            return

        for index in range(len(self._emphasis) - 1, -1, -1):
            if self._emphasis[index][0] == tag:
                del self._emphasis[index:]
                break

        if tag in ("ul", "ol"):
            self._flush()
            if self._lists:
                self._lists.pop()
        elif tag in _HEADINGS or tag in ("li", "tr") or tag in _BLOCK_TAGS:
            self._flush()

    def handle_data(self, data):
        if self._in_title:
            self.title += data.strip()
            return
        if self._skip:
            return
        text = re.sub(r"\s+", " ", data)
        if not text.strip():
            if self._current is not None and self._current.runs:
                self._current.runs.append(TextRun(" "))
            return
        if self._current is None:
            self._current = TextBlock(kind="paragraph")
        if not self._current.runs:
            text = text.lstrip()
        self._current.runs.append(TextRun(text, bold=self._bold(), italic=self._italic()))

    def close(self):
        super().close()
        self._flush()


def extract_text_blocks(html_content: str) -> Tuple[str, List[TextBlock]]:
    """Return ``(title, blocks)`` for *html_content*."""
    parser = _DocumentTextParser()
    parser.feed(html_content or "")
    parser.close()
    return parser.title, parser.blocks


class TextPdfGenerator:
    """Secondary tier renderer: FPDF output built from the document's text."""

    name = "fpdf"
    font_family = "helvetica"
    font_size = 11
    line_height = 6
    heading_sizes = {1: 16, 2: 14, 3: 12, 4: 11}

    def __init__(self, letterhead: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
        self.letterhead = letterhead
        self.logger = logger or logging.getLogger(__name__)

    def _new_document(self, layout: LayoutOptions, title: str) -> FPDF:
        size = _PAGE_SIZES_MM.get(layout.page_format.lower(), _PAGE_SIZES_MM["a4"])
        margins = {side: max(length_to_mm(layout.margins.get(side)), _MIN_MARGIN_MM) for side in layout.margins}
        pdf = FPDF(unit="mm", format=size)
        pdf.set_margins(left=margins.get("left", _MIN_MARGIN_MM), top=margins.get("top", _MIN_MARGIN_MM),
                        right=margins.get("right", _MIN_MARGIN_MM))
        pdf.set_auto_page_break(auto=True, margin=margins.get("bottom", _MIN_MARGIN_MM))
        if title:
            pdf.set_title(latin1(title))
        pdf.add_page()
        return pdf

    def _write_block(self, pdf: FPDF, block: TextBlock) -> None:
        if block.kind == "heading":
            size = self.heading_sizes.get(block.level, self.font_size)
            pdf.set_font(self.font_family, style="B", size=size)
            pdf.multi_cell(0, size * 0.5, latin1(block.text))
            pdf.ln(2)
            return

        indent = 5.0 * block.level if block.kind == "item" else 0.0
        pdf.set_x(pdf.l_margin + indent)
        if block.marker:
            pdf.set_font(self.font_family, size=self.font_size)
            pdf.write(self.line_height, block.marker)
        for run in block.runs:
            pdf.set_font(self.font_family, style=run.style, size=self.font_size)
            pdf.write(self.line_height, latin1(run.text))
        pdf.ln(self.line_height + (0 if block.kind in ("item", "row") else 2))

    def render(self, html_content: str, layout: LayoutOptions) -> bytes:
        title, blocks = extract_text_blocks(html_content)
        pdf = self._new_document(layout, title)

        if self.letterhead:
            pdf.set_font(self.font_family, style="B", size=16)
            pdf.cell(0, 10, latin1(self.letterhead), align="C")
            pdf.ln(14)

        for block in blocks:
            self._write_block(pdf, block)

        if not blocks:
            pdf.set_font(self.font_family, size=self.font_size)
            pdf.multi_cell(0, self.line_height, latin1(title or " "))

        data = bytes(pdf.output())
        self.logger.info("Generated text-only PDF with FPDF (%d bytes, %d blocks)", len(data), len(blocks))
        return data


__all__ = ["TextBlock", "TextPdfGenerator", "TextRun", "extract_text_blocks", "latin1", "length_to_mm"]
