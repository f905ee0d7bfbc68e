"""Helpers for deriving safe download filenames from document titles."""
from __future__ import annotations

import os
import re
from typing import Optional


def sanitize_filename(name: str, default: str = 'file') -> str:
    """Return a safe base filename without extension."""
    if not name:
        return default
    name = os.path.basename(name)
    name_without_ext = os.path.splitext(name)[0] if name.lower().endswith(('.pdf', '.html')) else name
    safe_name = re.sub(r"[^\w\s\.\-\(\),]", '', name_without_ext)
    safe_name = re.sub(r"\s{2,}", ' ', safe_name).strip()
    safe_name = safe_name.rstrip('. ')
    return safe_name if safe_name else default


def title_slug(title: Optional[str], default: str = 'Document') -> str:
    """``"BOA Election 2026"`` -> ``"BOA_Election_2026"``."""
    slug = re.sub(r"[^A-Za-z0-9]+", '_', title or '').strip('_')
    return slug or default


def download_filename(title: Optional[str], suffix: Optional[str], extension: str) -> str:
    """Build ``<Title>_<Suffix>.<ext>`` for a Content-Disposition header."""
    base = title_slug(title)
    if suffix:
        base = f"{base}_{title_slug(suffix, default='')}".rstrip('_')
    return f"{base}.{extension.lstrip('.')}"


__all__ = [
    'download_filename',
    'sanitize_filename',
    'title_slug',
]
