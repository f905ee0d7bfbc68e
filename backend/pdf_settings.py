import logging
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional


logger = logging.getLogger(__name__)

DEFAULT_PDF_PAGE_FORMAT = "A4"
PDF_PAGE_FORMAT_ENV_KEYS = (
    "PDF_PAGE_FORMAT",
    "PDF_PAGE_SIZE",
    "PAGE_FORMAT",
    "PAGE_SIZE",
)
PDF_PAGE_FORMAT_ALIASES = {
    "LETTER": "Letter",
    "US-LETTER": "Letter",
    "US_LETTER": "Letter",
    "A4": "A4",
    "A3": "A3",
    "A5": "A5",
    "LEGAL": "Legal",
    "TABLOID": "Tabloid",
}
MARGIN_SIDES = ("top", "right", "bottom", "left")
DEFAULT_MARGIN = "10mm"

DEFAULT_CONTENT_TIMEOUT_MS = 30000
DEFAULT_RENDER_TIMEOUT_MS = 30000
DEFAULT_LAUNCH_TIMEOUT_MS = 30000


def _standardize_page_key(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"[^A-Z0-9]+", "-", value.upper()).strip('-')


def normalize_page_format(value: str | None, fallback: str = DEFAULT_PDF_PAGE_FORMAT) -> str:
    """Map user supplied page names onto the names Chromium understands."""
    if not value or not str(value).strip():
        return fallback
    resolved = PDF_PAGE_FORMAT_ALIASES.get(_standardize_page_key(str(value)))
    if resolved:
        return resolved
    logger.warning("Unrecognized PDF page format '%s'; falling back to %s.", value, fallback)
    return fallback


def normalize_margin_value(value: str | float | int | None, fallback: str, side: str) -> str:
    if value is None:
        return fallback

    candidate = str(value).strip()
    if not candidate:
        return fallback

    lower_candidate = candidate.lower()
    if re.fullmatch(r"\d+(?:\.\d+)?\s*(in|cm|mm|px|pt)", lower_candidate):
        return lower_candidate.replace(" ", "")

    if re.fullmatch(r"\d+(?:\.\d+)?", candidate):
        normalized = f"{candidate}px"
        logger.debug("Normalized numeric margin for %s side: %s -> %s", side, candidate, normalized)
        return normalized

    logger.warning(
        "Invalid margin value '%s' for %s side. Falling back to %s.",
        value,
        side,
        fallback,
    )
    return fallback


@dataclass(frozen=True)
class LayoutOptions:
    """Page layout handed to the renderer for one document."""

    page_format: str = DEFAULT_PDF_PAGE_FORMAT
    print_background: bool = True
    margins: Dict[str, str] = field(
        default_factory=lambda: {side: DEFAULT_MARGIN for side in MARGIN_SIDES}
    )
    prefer_css_page_size: bool = False
    display_header_footer: bool = False

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        base: Optional["LayoutOptions"] = None,
    ) -> "LayoutOptions":
        """Build options from a loose mapping, filling gaps from *base*.

        Accepts both the camelCase keys used by the admin console
        (``pageFormat``, ``printBackground``) and snake_case keys.
        """
        base = base or cls()
        if not data:
            return base

        page_format = data.get("page_format", data.get("pageFormat", data.get("format")))
        print_background = data.get("print_background", data.get("printBackground"))
        prefer_css = data.get("prefer_css_page_size", data.get("preferCSSPageSize"))
        header_footer = data.get("display_header_footer", data.get("displayHeaderFooter"))

        margins = dict(base.margins)
        raw_margins = data.get("margins", data.get("margin"))
        if isinstance(raw_margins, Mapping):
            for side in MARGIN_SIDES:
                if side in raw_margins:
                    margins[side] = normalize_margin_value(raw_margins[side], margins[side], side)
        elif raw_margins is not None:
            for side in MARGIN_SIDES:
                margins[side] = normalize_margin_value(raw_margins, margins[side], side)

        return replace(
            base,
            page_format=normalize_page_format(page_format, base.page_format) if page_format else base.page_format,
            print_background=base.print_background if print_background is None else bool(print_background),
            margins=margins,
            prefer_css_page_size=base.prefer_css_page_size if prefer_css is None else bool(prefer_css),
            display_header_footer=base.display_header_footer if header_footer is None else bool(header_footer),
        )

    def to_pdf_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for Playwright's ``page.pdf``."""
        return {
            "format": self.page_format,
            "margin": dict(self.margins),
            "print_background": self.print_background,
            "prefer_css_page_size": self.prefer_css_page_size,
            "display_header_footer": self.display_header_footer,
        }


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", key, raw, default)
        return default


def _env_flag(key: str) -> Optional[bool]:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def resolve_pdf_layout_settings() -> LayoutOptions:
    """Return the deployment-wide default layout from the environment."""
    page_format = DEFAULT_PDF_PAGE_FORMAT
    for key in PDF_PAGE_FORMAT_ENV_KEYS:
        val = os.environ.get(key)
        if val:
            page_format = normalize_page_format(val.strip())
            break

    margins = {side: DEFAULT_MARGIN for side in MARGIN_SIDES}

    general_margin = os.environ.get('PDF_MARGIN')
    if general_margin:
        normalized_general = normalize_margin_value(general_margin, DEFAULT_MARGIN, 'all')
        for side in MARGIN_SIDES:
            margins[side] = normalized_general

    for side in MARGIN_SIDES:
        side_value = os.environ.get(f'PDF_MARGIN_{side.upper()}')
        if side_value:
            margins[side] = normalize_margin_value(side_value, margins[side], side)

    logger.info("Using PDF page format '%s' with margins %s", page_format, margins)
    return LayoutOptions(page_format=page_format, margins=margins)


@dataclass(frozen=True)
class RenderSettings:
    """Timeouts and browser knobs for the rendering pipeline."""

    content_timeout_ms: int = DEFAULT_CONTENT_TIMEOUT_MS
    render_timeout_ms: int = DEFAULT_RENDER_TIMEOUT_MS
    launch_timeout_ms: int = DEFAULT_LAUNCH_TIMEOUT_MS
    no_sandbox: Optional[bool] = None
    max_renders_per_browser: int = 0
    auto_install_browser: bool = False

    @classmethod
    def from_env(cls) -> "RenderSettings":
        return cls(
            content_timeout_ms=_env_int("PDF_CONTENT_TIMEOUT_MS", DEFAULT_CONTENT_TIMEOUT_MS),
            render_timeout_ms=_env_int("PDF_RENDER_TIMEOUT_MS", DEFAULT_RENDER_TIMEOUT_MS),
            launch_timeout_ms=_env_int("BROWSER_LAUNCH_TIMEOUT_MS", DEFAULT_LAUNCH_TIMEOUT_MS),
            no_sandbox=_env_flag("BROWSER_NO_SANDBOX"),
            max_renders_per_browser=max(0, _env_int("BROWSER_MAX_RENDERS", 0)),
            auto_install_browser=bool(_env_flag("PLAYWRIGHT_AUTO_INSTALL")),
        )
