"""Built-in templates used when no admin-configured template exists.

Record values are embedded directly (HTML-escaped); organisation details are
left as ``{{BOA_*}}`` tokens for the compositor to fill in.
"""
from __future__ import annotations

from html import escape
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from document_formatting import (
    NOT_AVAILABLE,
    format_amount,
    format_delegate_category,
    format_display_date,
    format_display_datetime,
    format_person_name,
    or_placeholder,
    parse_positions,
)

_BASE_STYLE = """
    body { font-family: Arial, sans-serif; padding: 20px; line-height: 1.6; color: #333; }
    .header { text-align: center; margin-bottom: 30px; border-bottom: 2px solid #0B3C5D; padding-bottom: 20px; }
    .header h1 { color: #0B3C5D; margin-bottom: 10px; }
    .header h2 { color: #C9A227; margin-bottom: 5px; }
    .form-section { margin-bottom: 25px; padding: 15px; border: 1px solid #ddd; }
    .section-title { font-weight: bold; color: #0B3C5D; margin-bottom: 15px; font-size: 16px; }
    .form-field { margin-bottom: 15px; display: flex; align-items: center; }
    .field-label { font-weight: bold; width: 200px; }
    .field-line { border-bottom: 1px solid #333; flex: 1; min-height: 20px; margin-left: 10px; }
    .positions-box { background: #f8f9fa; padding: 15px; border: 1px solid #dee2e6; margin: 15px 0; }
    .declaration { background: #f9f9f9; padding: 15px; border-left: 4px solid #C9A227; margin: 20px 0; }
    .signature-section { display: flex; justify-content: space-between; margin-top: 40px; }
    .signature-box { text-align: center; width: 200px; }
    .signature-line { border-bottom: 1px solid #333; margin-bottom: 5px; height: 40px; }
    table.details { width: 100%; border-collapse: collapse; margin-bottom: 10px; }
    table.details td { padding: 6px 8px; border-bottom: 1px solid #eee; }
    table.details td.label { font-weight: bold; width: 40%; }
    .footer { margin-top: 30px; text-align: center; font-size: 12px; color: #666; }
    @media print { body { margin: 0; padding: 10px; } }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
  <style>{_BASE_STYLE}  </style>
</head>
<body>
{body}
  <div class="footer">
    <p>{{{{BOA_NAME}}}} | {{{{BOA_WEBSITE}}}} | {{{{BOA_EMAIL}}}}</p>
  </div>
</body>
</html>
"""


def _blank_fields(labels: Iterable[str]) -> str:
    return "\n".join(
        f'    <div class="form-field"><div class="field-label">{escape(label)}:</div>'
        f'<div class="field-line"></div></div>'
        for label in labels
    )


def _section(title: str, content: str) -> str:
    return f"""  <div class="form-section">
    <div class="section-title">{escape(title)}</div>
{content}
  </div>"""


def detail_rows(rows: Iterable[Tuple[str, Any]]) -> str:
    """Render ``(label, value)`` pairs as escaped table rows."""
    return "\n".join(
        f'    <tr><td class="label">{escape(label)}</td><td>{escape(str(value))}</td></tr>'
        for label, value in rows
    )


def _signature_block(right_label: str) -> str:
    return f"""  <div class="signature-section">
    <div class="signature-box"><div class="signature-line"></div><div>Date</div></div>
    <div class="signature-box"><div class="signature-line"></div><div>{escape(right_label)}</div></div>
  </div>"""


def default_membership_template(record: Optional[Mapping[str, Any]] = None) -> str:
    record = record or {}
    membership_type = record.get("membership_type") or record.get("title")
    heading = f"{membership_type} Membership Application Form" if membership_type else "Membership Application Form"
    body = f"""  <div class="header">
    <h1>{{{{BOA_NAME}}}}</h1>
    <h2>{escape(heading)}</h2>
    <p><strong>Date:</strong> {{{{CURRENT_DATE}}}}</p>
  </div>
{_section("Personal Information", _blank_fields(["Full Name", "Date of Birth", "Gender", "Mobile Number", "Email"]))}
{_section("Professional Information", _blank_fields(["Qualification", "Institution", "Designation", "Registration No"]))}
{_section("Address Information", _blank_fields(["Complete Address", "City", "State", "PIN Code"]))}
  <div class="declaration">
    <p><strong>Declaration:</strong> I hereby apply for membership of the {{{{BOA_NAME}}}} and agree to abide by its rules and regulations.</p>
  </div>
{_signature_block("Applicant Signature")}"""
    return _page(heading, body)


def default_seminar_template(record: Mapping[str, Any]) -> str:
    name = or_placeholder(record.get("name"), "BOA Seminar")
    venue = or_placeholder(record.get("venue") or record.get("location"))
    start = format_display_date(record.get("start_date"), "TBA")
    end = format_display_date(record.get("end_date"), "")
    dates = f"{start} - {end}" if end and end != start else start
    body = f"""  <div class="header">
    <h1>{{{{BOA_NAME}}}}</h1>
    <h2>{escape(name)}</h2>
    <p><strong>Venue:</strong> {escape(venue)}</p>
    <p><strong>Date:</strong> {escape(dates)}</p>
  </div>
  <h3>Registration Form</h3>
{_section("Delegate Information", _blank_fields(["Name", "Email", "Phone", "Institution", "Designation", "Delegate Category"]))}
  <div class="declaration">
    <p><strong>Declaration:</strong> I hereby register for the above seminar and agree to abide by the terms and conditions.</p>
  </div>
{_signature_block("Signature")}"""
    return _page(f"{name} - Registration Form", body)


def default_election_template(record: Mapping[str, Any]) -> str:
    title = or_placeholder(record.get("title"), "Election")
    eligible = or_placeholder(record.get("eligible_members"), "Life Member")
    positions: List[str] = parse_positions(record.get("positions"))
    optional_lines = []
    if record.get("voting_time"):
        optional_lines.append(f"    <p><strong>Voting Time:</strong> {escape(str(record['voting_time']))}</p>")
    if record.get("voting_venue"):
        optional_lines.append(f"    <p><strong>Venue:</strong> {escape(str(record['voting_venue']))}</p>")
    optional_html = "\n".join(optional_lines)
    body = f"""  <div class="header">
    <h1>{{{{BOA_NAME}}}}</h1>
    <h2>{escape(title)}</h2>
    <p><strong>Eligible Members:</strong> {escape(eligible)}</p>
    <p><strong>Nomination Deadline:</strong> {escape(format_display_date(record.get("deadline"), "TBA"))}</p>
    <p><strong>Voting Date:</strong> {escape(format_display_date(record.get("voting_date"), "TBA"))}</p>
{optional_html}
  </div>
  <div class="positions-box">
    <div class="section-title">Positions Available for Election:</div>
    <p>{escape(", ".join(positions))}</p>
  </div>
{_section("Candidate Information", _blank_fields(["Position Applied For", "Full Name", "Life Membership No", "Mobile Number", "Email"]))}
{_section("Professional Details", _blank_fields(["Designation", "Qualification", "Working Place", "Age", "Gender"]))}
{_section("Address Information", _blank_fields(["Complete Address"]))}
  <div class="declaration">
    <p><strong>Declaration:</strong> I hereby submit my nomination for the position mentioned above in the {escape(title)}. I confirm that I am a {escape(eligible)} of the {{{{BOA_NAME}}}} and meet all eligibility criteria. I agree to abide by the election rules and regulations set by the association.</p>
  </div>
{_signature_block("Candidate Signature")}"""
    return _page(f"{title} - Nomination Form", body)


def receipt_detail_pairs(record: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Type specific "Additional Details" rows for a payment receipt."""
    details: Dict[str, Any] = dict(record.get("details") or {})
    receipt_type = str(record.get("type") or "")
    if receipt_type == "Seminar Registration":
        return [
            ("Location", or_placeholder(details.get("seminar_location"), NOT_AVAILABLE)),
            ("Start Date", format_display_date(details.get("start_date"), NOT_AVAILABLE)),
            ("End Date", format_display_date(details.get("end_date"), NOT_AVAILABLE)),
            ("Delegate Category", format_delegate_category(details.get("delegate_category"))),
        ]
    if receipt_type == "Membership Registration":
        return [
            ("Membership Type", or_placeholder(details.get("membership_type"), NOT_AVAILABLE)),
            ("Category", or_placeholder(details.get("category"), NOT_AVAILABLE)),
            ("Qualification", or_placeholder(details.get("qualification"), NOT_AVAILABLE)),
            ("Institution", or_placeholder(details.get("institution"), NOT_AVAILABLE)),
        ]
    return [(str(k).replace("_", " ").title(), or_placeholder(v, NOT_AVAILABLE)) for k, v in details.items()]


def default_receipt_template(record: Mapping[str, Any]) -> str:
    receipt_type = or_placeholder(record.get("type"), "Payment")
    user_rows = [
        ("Name", format_person_name(record.get("user") or record) or NOT_AVAILABLE),
        ("Email", or_placeholder(record.get("user_email") or record.get("email"), NOT_AVAILABLE)),
        ("Mobile", or_placeholder(record.get("user_mobile") or record.get("mobile"), NOT_AVAILABLE)),
    ]
    address = record.get("user_address") or record.get("address")
    if address:
        user_rows.append(("Address", address))

    payment_rows = [("Payment For", or_placeholder(record.get("payment_for"), NOT_AVAILABLE))]
    registration_no = record.get("registration_no")
    if registration_no and registration_no != NOT_AVAILABLE:
        payment_rows.append(("Registration No", registration_no))
    payment_rows.extend([
        ("Amount", format_amount(record.get("amount"))),
        ("Transaction ID", or_placeholder(record.get("transaction_id"), NOT_AVAILABLE)),
        ("Payment Method", or_placeholder(record.get("payment_method"), NOT_AVAILABLE)),
        ("Status", or_placeholder(record.get("status"), NOT_AVAILABLE).upper()),
        ("Date", format_display_datetime(record.get("date"), NOT_AVAILABLE)),
    ])

    extra = receipt_detail_pairs(record)
    extra_html = ""
    if extra:
        extra_html = _section("Additional Details", f'    <table class="details">\n{detail_rows(extra)}\n    </table>')

    body = f"""  <div class="header">
    <h1>{{{{BOA_NAME}}}}</h1>
    <h2>Payment Receipt</h2>
    <p style="text-align: right;">Receipt Date: {{{{CURRENT_DATE}}}}</p>
  </div>
  <h3>{escape(receipt_type)}</h3>
{_section("User Details", f'    <table class="details">{chr(10)}{detail_rows(user_rows)}{chr(10)}    </table>')}
{_section("Payment Details", f'    <table class="details">{chr(10)}{detail_rows(payment_rows)}{chr(10)}    </table>')}
{extra_html}
  <p style="text-align: center; font-size: 10px; font-style: italic;">This is a computer-generated receipt and does not require a signature.</p>"""
    return _page(f"{receipt_type} - Payment Receipt", body)


__all__ = [
    "default_election_template",
    "default_membership_template",
    "default_receipt_template",
    "default_seminar_template",
    "detail_rows",
    "receipt_detail_pairs",
]
