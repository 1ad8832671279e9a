"""
Date of birth parsing and age checks for applicants
"""

from datetime import date, datetime
from typing import Optional

from app.utils.error_handler import ValidationError

MIN_AGE = 16
MAX_AGE = 100

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


def _from_parts(day, month, year) -> date:
    try:
        return date(int(year), int(month), int(day))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Invalid date of birth")


def parse_date_of_birth(value) -> date:
    """
    Accepts {day, month, year} (a mapping or an object with those attributes),
    'YYYY-MM-DD', 'MM/DD/YYYY' with or without leading zeros, or an ISO datetime.
    """
    if value is None or value == "":
        raise ValidationError("Date of birth is required")

    if isinstance(value, dict):
        return _from_parts(value.get("day"), value.get("month"), value.get("year"))
    if all(hasattr(value, attr) for attr in ("day", "month", "year")) and not isinstance(value, (date, str)):
        return _from_parts(value.day, value.month, value.year)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"Invalid date of birth: {text}")


def age_on(born: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def validate_age(born: date, today: Optional[date] = None) -> int:
    age = age_on(born, today)
    if age < MIN_AGE or age > MAX_AGE:
        raise ValidationError(f"Applicant must be between {MIN_AGE} and {MAX_AGE} years old")
    return age
