"""Token substitution and print scaffolding for HTML document templates.

``compose`` is a pure function: identical inputs always give byte-identical
output.  Tokens look like ``{{NAME}}`` and are resolved in a single literal
pass, so a substituted value is never scanned for further tokens.  Tokens
without a value are left in place so missing data stays visible.
"""
from __future__ import annotations

import html
import re
from datetime import date
from typing import Any, Collection, Mapping, Optional, Pattern

from document_formatting import format_display_date
from render_errors import TemplateCompositionError

TOKEN_RE = re.compile(r"\{\{([A-Za-z0-9_.\-]+)\}\}")

_STYLE_OPEN_RE = re.compile(r"<style\b", re.IGNORECASE)
_STYLE_CLOSE_RE = re.compile(r"</style\s*>", re.IGNORECASE)
_STYLESHEET_LINK_RE = re.compile(r"<link\b[^>]*\brel\s*=\s*[\"']?stylesheet", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!doctype\b[^>]*>", re.IGNORECASE)
_HEAD_OPEN_RE = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)
_HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)
_HEAD_BLOCK_RE = re.compile(r"<head(?:\s[^>]*)?>.*?</head\s*>", re.IGNORECASE | re.DOTALL)
_HTML_OPEN_RE = re.compile(r"<html\b[^>]*>", re.IGNORECASE)
_BODY_OPEN_RE = re.compile(r"<body\b[^>]*>", re.IGNORECASE)

DEFAULT_STYLESHEET = """<style>
  body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; }
  .boa-header { background: #0B3C5D; color: white; padding: 20px; text-align: center; margin-bottom: 30px; }
  .boa-title, .seminar-title { font-size: 24px; font-weight: bold; margin-bottom: 10px; }
  .seminar-details { font-size: 14px; opacity: 0.9; }
  .header { text-align: center; margin-bottom: 30px; border-bottom: 2px solid #0B3C5D; padding-bottom: 20px; }
  .header h1 { color: #0B3C5D; }
  .header h2 { color: #C9A227; }
  .form-section { margin-bottom: 25px; padding: 15px; border: 1px solid #ddd; }
  .section-title { font-size: 16px; font-weight: bold; color: #0B3C5D; margin-bottom: 15px; border-bottom: 2px solid #C9A227; padding-bottom: 5px; }
  .form-field { margin-bottom: 15px; }
  .field-label { font-weight: bold; margin-bottom: 5px; }
  .field-line { border-bottom: 1px solid #333; min-height: 20px; display: inline-block; min-width: 200px; }
  .checkbox-group { margin: 10px 0; }
  .fee-structure, .positions-box { background: #f8f9fa; padding: 15px; border: 1px solid #dee2e6; margin: 15px 0; }
  .declaration { background: #f9f9f9; padding: 15px; border-left: 4px solid #C9A227; margin: 20px 0; }
  .signature-section { display: flex; justify-content: space-between; margin-top: 40px; }
  .signature-box { text-align: center; width: 200px; }
  .signature-line { border-bottom: 1px solid #333; margin-bottom: 5px; height: 40px; }
  table.details { width: 100%; border-collapse: collapse; }
  table.details td { padding: 6px 8px; border-bottom: 1px solid #eee; }
  .footer { margin-top: 30px; text-align: center; font-size: 12px; color: #666; }
  @media print {
    body { margin: 0; padding: 10px; }
    .boa-header { margin-bottom: 20px; }
  }
</style>"""

_META_CHARSET = '<meta charset="UTF-8">'


def _coerce(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return format_display_date(value)
    return str(value)


def substitute_tokens(
    template: str,
    token_values: Mapping[str, Any],
    *,
    escape: bool = False,
    raw_keys: Collection[str] = (),
) -> str:
    """Replace every ``{{KEY}}`` that has a value; leave unknown tokens alone.

    Keys may contain any characters, including spaces and non-ASCII text.
    """
    resolved = {}
    for key, value in token_values.items():
        text = _coerce(value)
        if escape and key not in raw_keys:
            text = html.escape(text, quote=True)
        resolved["{{%s}}" % (key,)] = text

    pattern = _token_pattern(resolved)
    if pattern is None:
        return template
    return pattern.sub(lambda match: resolved[match.group(0)], template)


def _token_pattern(tokens: Collection[str]) -> Optional[Pattern[str]]:
    if not tokens:
        return None
    # Longest first so "{{A}}" never shadows a key that contains it.
    ordered = sorted(tokens, key=len, reverse=True)
    return re.compile("|".join(re.escape(token) for token in ordered))


def has_stylesheet(document: str) -> bool:
    return bool(_STYLE_OPEN_RE.search(document) or _STYLESHEET_LINK_RE.search(document))


def _check_balanced(document: str) -> None:
    """Reject markup the stylesheet cannot be injected into.

    The optional ``</head>`` and ``</html>`` end tags may be omitted.
    """
    opened = len(_STYLE_OPEN_RE.findall(document))
    closed = len(_STYLE_CLOSE_RE.findall(document))
    if opened != closed:
        raise TemplateCompositionError(
            f"Unbalanced <style> markup in template ({opened} opening, {closed} closing)"
        )
    if len(_HEAD_OPEN_RE.findall(document)) > 1 or len(_HEAD_CLOSE_RE.findall(document)) > 1:
        raise TemplateCompositionError("Template contains more than one <head> element")


def inject_stylesheet(document: str, stylesheet: str = DEFAULT_STYLESHEET) -> str:
    """Insert *stylesheet* into the document head, creating one if needed."""
    head_close = _HEAD_CLOSE_RE.search(document)
    if head_close:
        return f"{document[:head_close.start()]}{stylesheet}\n{document[head_close.start():]}"
    head_open = _HEAD_OPEN_RE.search(document)
    if head_open:
        return f"{document[:head_open.end()]}\n{stylesheet}\n{document[head_open.end():]}"

    head = f"<head>{_META_CHARSET}\n{stylesheet}\n</head>"
    anchor = _HTML_OPEN_RE.search(document) or _DOCTYPE_RE.search(document)
    if anchor:
        return f"{document[:anchor.end()]}\n{head}\n{document[anchor.end():]}"
    return f"{head}\n{document}"


def wrap_document(document: str) -> str:
    """Ensure a ``<!DOCTYPE html>`` document with ``<html>``, head and body."""
    if _DOCTYPE_RE.search(document):
        return document
    if _HTML_OPEN_RE.search(document):
        return f"<!DOCTYPE html>\n{document}"

    head_match = _HEAD_BLOCK_RE.search(document)
    if head_match:
        head = head_match.group(0)
        content = (document[:head_match.start()] + document[head_match.end():]).strip()
    elif _HEAD_OPEN_RE.search(document):
        # The head closes implicitly at the first body content.
        return f'<!DOCTYPE html>\n<html lang="en">\n{document.strip()}\n</html>'
    else:
        head = f"<head>{_META_CHARSET}</head>"
        content = document.strip()

    if not _BODY_OPEN_RE.search(content):
        content = f"<body>\n{content}\n</body>"
    return f'<!DOCTYPE html>\n<html lang="en">\n{head}\n{content}\n</html>'


def compose(
    raw_template: str,
    token_values: Mapping[str, Any],
    *,
    escape: bool = False,
    raw_keys: Collection[str] = (),
    stylesheet: str = DEFAULT_STYLESHEET,
) -> str:
    """Substitute tokens and return a complete, styled, print-ready document.

    ``escape=True`` HTML-escapes every value except those named in
    ``raw_keys``; by default values are inserted literally and callers must
    sanitise untrusted input themselves.
    """
    if not isinstance(raw_template, str):
        raise TemplateCompositionError(
            f"Template must be a string, got {type(raw_template).__name__}"
        )
    if not raw_template.strip():
        raise TemplateCompositionError("Template is empty")

    document = substitute_tokens(raw_template, token_values or {}, escape=escape, raw_keys=raw_keys)
    _check_balanced(document)

    if not has_stylesheet(document):
        document = inject_stylesheet(document, stylesheet)
    return wrap_document(document)


__all__ = [
    "DEFAULT_STYLESHEET",
    "TOKEN_RE",
    "compose",
    "has_stylesheet",
    "inject_stylesheet",
    "substitute_tokens",
    "wrap_document",
]
