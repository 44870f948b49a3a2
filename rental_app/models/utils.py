import re
import secrets
from datetime import datetime

KENYA_PREFIX = "254"


def normalize_phone(phone: str) -> str:
    """Return a Kenyan MSISDN in ``2547XXXXXXXX`` form (digits only)."""
    clean = re.sub(r"\D", "", phone or "")

    if clean.startswith("0") and len(clean) == 10:
        return KENYA_PREFIX + clean[1:]

    if len(clean) == 9 and clean[0] in {"7", "1"}:
        return KENYA_PREFIX + clean

    return clean


def to_international(phone: str) -> str:
    normalized = normalize_phone(phone)
    return f"+{normalized}" if normalized else normalized


def generate_invoice_reference(now: datetime) -> str:
    return f"INV-{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"
