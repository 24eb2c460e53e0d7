import datetime
from inventario.core.exceptions import ValidationError

def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)

def as_date(value) -> datetime.date:
    """Normalizes a date, datetime or ISO string into a date."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        return datetime.datetime.fromisoformat(value.strip()).date()
    raise TypeError(f"Cannot interpret {value!r} as a date")

def blank(value) -> bool:
    return value is None or not str(value).strip()

def positive_int(value, field: str) -> int:
    """Coerces ``value`` into an int greater than zero."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer")
    if number != value and str(number) != str(value).strip():
        raise ValidationError(f"{field} must be a positive integer")
    if number <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return number
