from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

SUFFIX_DIGITS = 5
SUFFIX_SPACE = 10 ** SUFFIX_DIGITS


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_package_number(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{SUFFIX_DIGITS}d}"


def parse_decimal(value: str) -> Decimal | None:
    """
    Parse a price or weight string; both '12.50' and '12,50' are accepted.
    Returns None when the value is not a finite number.
    """
    try:
        parsed = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed
