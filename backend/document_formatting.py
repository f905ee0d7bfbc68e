"""Display formatting for values that end up inside generated documents."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_DATETIME_FORMAT = "%d/%m/%Y, %H:%M:%S"
PLACEHOLDER = "TBA"
NOT_AVAILABLE = "N/A"
DEFAULT_POSITIONS = ["President", "Vice President", "Secretary", "Treasurer"]

_TITLE_MAP = {
    "dr": "Dr.",
    "mr": "Mr.",
    "mrs": "Mrs.",
    "ms": "Ms.",
    "prof": "Prof.",
}
_DELEGATE_CATEGORIES = {
    "boa-member": "BOA Member",
    "non-boa-member": "Non BOA Member",
    "accompanying-person": "Accompanying Person",
}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d %H:%M:%S", "%d/%m/%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    return None


def format_display_date(value: Any, default: str = "") -> str:
    """Format a date-like value as ``dd/mm/YYYY``.

    Strings that cannot be parsed are returned unchanged so pre-formatted
    dates pass straight through.
    """
    if value is None or value == "":
        return default
    parsed = _parse_datetime(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(DISPLAY_DATE_FORMAT)


def format_display_datetime(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    parsed = _parse_datetime(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(DISPLAY_DATETIME_FORMAT)


def format_amount(value: Any, currency: str = "₹") -> str:
    """``1500`` -> ``₹1,500.00``; unparseable values are shown as-is."""
    if value is None or value == "":
        return NOT_AVAILABLE
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return str(value)
    return f"{currency}{amount:,.2f}"


def format_person_title(title: Optional[str]) -> str:
    if not title:
        return ""
    return _TITLE_MAP.get(title.strip().lower().rstrip("."), title)


def format_person_name(record: Dict[str, Any]) -> str:
    if record.get("name"):
        return str(record["name"]).strip()
    parts = [
        format_person_title(record.get("title")),
        record.get("first_name") or "",
        record.get("surname") or record.get("last_name") or "",
    ]
    return " ".join(str(p).strip() for p in parts if p and str(p).strip())


def format_delegate_category(value: Optional[str]) -> str:
    if not value:
        return NOT_AVAILABLE
    return _DELEGATE_CATEGORIES.get(value, value)


def parse_positions(value: Any) -> List[str]:
    """Accept a list or a JSON encoded list; fall back to the standard posts."""
    positions = value
    if isinstance(value, str):
        try:
            positions = json.loads(value)
        except ValueError:
            positions = [p.strip() for p in value.split(",") if p.strip()]
    if not isinstance(positions, (list, tuple)) or not positions:
        return list(DEFAULT_POSITIONS)
    return [str(p) for p in positions]


def or_placeholder(value: Any, placeholder: str = PLACEHOLDER) -> str:
    if value is None:
        return placeholder
    text = str(value).strip()
    return text if text else placeholder


@dataclass(frozen=True)
class OrganisationDetails:
    name: str = "Bihar Ophthalmic Association"
    address: str = "Bihar Ophthalmic Association Address"
    phone: str = "+91-XXXXXXXXXX"
    email: str = "info@boabihar.org"
    website: str = "www.boabihar.org"

    @classmethod
    def from_env(cls) -> "OrganisationDetails":
        defaults = cls()
        return cls(
            name=os.environ.get("ORG_NAME", defaults.name),
            address=os.environ.get("ORG_ADDRESS", defaults.address),
            phone=os.environ.get("ORG_PHONE", defaults.phone),
            email=os.environ.get("ORG_EMAIL", defaults.email),
            website=os.environ.get("ORG_WEBSITE", defaults.website),
        )

    def tokens(self, now: datetime) -> Dict[str, str]:
        return {
            "CURRENT_DATE": now.strftime(DISPLAY_DATE_FORMAT),
            "CURRENT_YEAR": str(now.year),
            "BOA_NAME": self.name,
            "BOA_ADDRESS": self.address,
            "BOA_PHONE": self.phone,
            "BOA_EMAIL": self.email,
            "BOA_WEBSITE": self.website,
        }
