"""Use-case adapters: turn association records into render requests.

Each adapter maps a record (a plain ``dict`` as returned by the record store)
to template tokens, picks the template (caller supplied or built in), applies
the A4 document layout and hands a ``RenderRequest`` to the
``PDFGenerationService``.  The ``build_*_tokens`` functions and
``DocumentAdapter.prepare`` are pure so they can be inspected without a
browser.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from default_templates import (
    default_election_template,
    default_membership_template,
    default_receipt_template,
    default_seminar_template,
    detail_rows,
    receipt_detail_pairs,
)
from document_formatting import (
    NOT_AVAILABLE,
    OrganisationDetails,
    format_amount,
    format_display_date,
    format_display_datetime,
    format_person_name,
    or_placeholder,
    parse_positions,
)
from filename_utils import download_filename
from pdf_settings import DEFAULT_MARGIN, MARGIN_SIDES, LayoutOptions
from render_models import RenderRequest, RenderResult

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]
LayoutLike = Union[LayoutOptions, Mapping[str, Any], None]

DOCUMENT_LAYOUT = LayoutOptions(
    page_format="A4",
    print_background=True,
    margins={side: DEFAULT_MARGIN for side in MARGIN_SIDES},
    prefer_css_page_size=True,
    display_header_footer=False,
)

# Tokens whose values are HTML produced by this module or by an administrator.
RAW_HTML_TOKENS = frozenset({"DETAILS_ROWS"})


class DocumentType(str, Enum):
    MEMBERSHIP_FORM = "membership_form"
    SEMINAR_FORM = "seminar_form"
    ELECTION_FORM = "election_form"
    PAYMENT_RECEIPT = "payment_receipt"


def resolve_layout(layout: LayoutLike) -> LayoutOptions:
    """Overlay caller supplied layout options on the document defaults."""
    if layout is None:
        return DOCUMENT_LAYOUT
    if isinstance(layout, LayoutOptions):
        return layout
    return LayoutOptions.from_mapping(layout, base=DOCUMENT_LAYOUT)


def _has_template(template: Optional[str]) -> bool:
    return isinstance(template, str) and bool(template.strip())


def _text(record: Record, *keys: str, default: str = "") -> str:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return default


# Token builders -----------------------------------------------------------

def build_membership_tokens(
    record: Optional[Record], organisation: OrganisationDetails, now: datetime
) -> Dict[str, str]:
    record = record or {}
    tokens = organisation.tokens(now)
    tokens.update({
        "MEMBER_NAME": format_person_name(dict(record)),
        "MEMBERSHIP_TYPE": _text(record, "membership_type", "title"),
        "MEMBERSHIP_NO": _text(record, "membership_no", "registration_no"),
    })
    return tokens


def build_seminar_tokens(record: Record, organisation: OrganisationDetails, now: datetime) -> Dict[str, str]:
    tokens = organisation.tokens(now)
    name = or_placeholder(record.get("name") or record.get("title"), "BOA Seminar")
    venue = or_placeholder(record.get("venue") or record.get("location"))
    tokens.update({
        "SEMINAR_NAME": name,
        "SEMINAR_TITLE": name,
        "SEMINAR_VENUE": venue,
        "SEMINAR_LOCATION": or_placeholder(record.get("location") or record.get("venue")),
        "SEMINAR_START_DATE": format_display_date(record.get("start_date"), "TBA"),
        "SEMINAR_END_DATE": format_display_date(record.get("end_date"), "TBA"),
        "REGISTRATION_START": format_display_date(record.get("registration_start"), "TBA"),
        "REGISTRATION_END": format_display_date(record.get("registration_end"), "TBA"),
    })
    return tokens


def build_election_tokens(record: Record, organisation: OrganisationDetails, now: datetime) -> Dict[str, str]:
    tokens = organisation.tokens(now)
    tokens.update({
        "ELECTION_TITLE": or_placeholder(record.get("title"), "Election"),
        "ELECTION_DESCRIPTION": _text(record, "description"),
        "ELIGIBLE_MEMBERS": or_placeholder(record.get("eligible_members"), "Life Member"),
        "NOMINATION_DEADLINE": format_display_date(record.get("deadline"), "TBA"),
        "VOTING_DATE": format_display_date(record.get("voting_date"), "TBA"),
        "VOTING_TIME": or_placeholder(record.get("voting_time")),
        "VOTING_VENUE": or_placeholder(record.get("voting_venue")),
        "CONTACT_MOBILE": or_placeholder(record.get("contact_mobile"), NOT_AVAILABLE),
        "POSITIONS": ", ".join(parse_positions(record.get("positions"))),
    })
    return tokens


def build_receipt_tokens(record: Record, organisation: OrganisationDetails, now: datetime) -> Dict[str, str]:
    tokens = organisation.tokens(now)
    payer = record.get("user") or record
    tokens.update({
        "RECEIPT_TYPE": or_placeholder(record.get("type"), "Payment"),
        "PAYER_NAME": format_person_name(dict(payer)) or NOT_AVAILABLE,
        "PAYER_EMAIL": _text(record, "user_email", "email", default=NOT_AVAILABLE),
        "PAYER_MOBILE": _text(record, "user_mobile", "mobile", default=NOT_AVAILABLE),
        "PAYER_ADDRESS": _text(record, "user_address", "address", default=NOT_AVAILABLE),
        "PAYMENT_FOR": _text(record, "payment_for", default=NOT_AVAILABLE),
        "REGISTRATION_NO": _text(record, "registration_no", default=NOT_AVAILABLE),
        "AMOUNT": format_amount(record.get("amount")),
        "TRANSACTION_ID": _text(record, "transaction_id", default=NOT_AVAILABLE),
        "PAYMENT_METHOD": _text(record, "payment_method", default=NOT_AVAILABLE),
        "PAYMENT_STATUS": _text(record, "status", default=NOT_AVAILABLE).upper(),
        "PAYMENT_DATE": format_display_datetime(record.get("date"), NOT_AVAILABLE),
        "RECEIPT_DATE": tokens["CURRENT_DATE"],
        "DETAILS_ROWS": detail_rows(receipt_detail_pairs(record)),
    })
    return tokens


def receipt_filename(record: Record, extension: str) -> str:
    """Receipts are named after the payment id: ``payment_receipt_<id>.<ext>``."""
    payment_id = record.get("id") or record.get("transaction_id")
    title = f"payment_receipt_{payment_id}" if payment_id else "payment_receipt"
    return download_filename(title, None, extension)


# Adapter registry ---------------------------------------------------------

@dataclass(frozen=True)
class DocumentAdapter:
    """Binds a document type to its token builder, default template and naming."""

    document_type: DocumentType
    build_tokens: Callable[[Record, OrganisationDetails, datetime], Dict[str, str]]
    default_template: Callable[[Record], str]
    title_keys: tuple
    default_title: str
    filename_suffix: str
    naming: Optional[Callable[[Record, str], str]] = None

    def title(self, record: Optional[Record]) -> str:
        return _text(record or {}, *self.title_keys, default=self.default_title)

    def filename(self, record: Optional[Record], extension: str) -> str:
        if self.naming is not None:
            return self.naming(record or {}, extension)
        return download_filename(self.title(record), self.filename_suffix, extension)

    def prepare(
        self,
        record: Optional[Record],
        template: Optional[str] = None,
        layout: LayoutLike = None,
        organisation: Optional[OrganisationDetails] = None,
        now: Optional[datetime] = None,
    ) -> RenderRequest:
        record = record or {}
        organisation = organisation or OrganisationDetails.from_env()
        now = now or datetime.now()
        if not _has_template(template):
            logger.info("No %s template configured, using the built-in default", self.document_type.value)
            template = self.default_template(record)
        return RenderRequest(
            html_template=template,
            token_values=self.build_tokens(record, organisation, now),
            layout=resolve_layout(layout),
            document_type=self.document_type.value,
            escape_values=True,
            raw_keys=RAW_HTML_TOKENS,
        )

    async def render(
        self,
        service,
        record: Optional[Record],
        template: Optional[str] = None,
        layout: LayoutLike = None,
        now: Optional[datetime] = None,
    ) -> RenderResult:
        request = self.prepare(record, template, layout, getattr(service, "organisation", None), now)
        return await service.render(request)


ADAPTERS: Dict[DocumentType, DocumentAdapter] = {
    DocumentType.MEMBERSHIP_FORM: DocumentAdapter(
        DocumentType.MEMBERSHIP_FORM,
        build_membership_tokens,
        default_membership_template,
        title_keys=("organisation_short_name",),
        default_title="BOA",
        filename_suffix="Membership_Application_Form",
    ),
    DocumentType.SEMINAR_FORM: DocumentAdapter(
        DocumentType.SEMINAR_FORM,
        build_seminar_tokens,
        default_seminar_template,
        title_keys=("name", "title"),
        default_title="BOA_Seminar",
        filename_suffix="Registration_Form",
    ),
    DocumentType.ELECTION_FORM: DocumentAdapter(
        DocumentType.ELECTION_FORM,
        build_election_tokens,
        default_election_template,
        title_keys=("title",),
        default_title="Election",
        filename_suffix="Nomination_Form",
    ),
    DocumentType.PAYMENT_RECEIPT: DocumentAdapter(
        DocumentType.PAYMENT_RECEIPT,
        build_receipt_tokens,
        default_receipt_template,
        title_keys=("receipt_title",),
        default_title="payment_receipt",
        filename_suffix="",
        naming=receipt_filename,
    ),
}


def get_adapter(document_type: Union[DocumentType, str]) -> DocumentAdapter:
    return ADAPTERS[DocumentType(document_type)]


# Convenience coroutines ---------------------------------------------------

async def render_membership_form(service, record=None, template=None, layout=None, now=None) -> RenderResult:
    return await ADAPTERS[DocumentType.MEMBERSHIP_FORM].render(service, record, template, layout, now)


async def render_seminar_form(service, record, template=None, layout=None, now=None) -> RenderResult:
    return await ADAPTERS[DocumentType.SEMINAR_FORM].render(service, record, template, layout, now)


async def render_election_form(service, record, template=None, layout=None, now=None) -> RenderResult:
    return await ADAPTERS[DocumentType.ELECTION_FORM].render(service, record, template, layout, now)


async def render_payment_receipt(service, record, template=None, layout=None, now=None) -> RenderResult:
    return await ADAPTERS[DocumentType.PAYMENT_RECEIPT].render(service, record, template, layout, now)


__all__ = [
    "ADAPTERS",
    "DOCUMENT_LAYOUT",
    "DocumentAdapter",
    "DocumentType",
    "build_election_tokens",
    "build_membership_tokens",
    "build_receipt_tokens",
    "build_seminar_tokens",
    "get_adapter",
    "receipt_filename",
    "render_election_form",
    "render_membership_form",
    "render_payment_receipt",
    "render_seminar_form",
    "resolve_layout",
]
