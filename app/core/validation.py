"""Field rules shared by the chatbot validator and the booking form."""
import calendar
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PHONE_RE = re.compile(r"^\d{10}$")

MIN_AGE = 16
MAX_AGE = 65
MAX_BOOKING_MONTHS = 6


def _result(valid: bool, message: str) -> Dict[str, Any]:
    return {"valid": valid, "message": message}


def validate_name(value: Any) -> Dict[str, Any]:
    if not value or not isinstance(value, str):
        return _result(False, "Name is required")
    trimmed = value.strip()
    if len(trimmed) < 2:
        return _result(False, "Name must be at least 2 characters")
    if len(trimmed) > 50:
        return _result(False, "Name must be less than 50 characters")
    if not NAME_RE.match(trimmed):
        return _result(False, "Name can only contain letters and spaces")
    return _result(True, "Valid name")


def validate_age(value: Any) -> Dict[str, Any]:
    try:
        age = int(str(value).strip())
    except (TypeError, ValueError):
        return _result(False, "Age must be a number")
    if age < MIN_AGE:
        return _result(False, f"Age must be at least {MIN_AGE} years")
    if age > MAX_AGE:
        return _result(False, f"Age must be less than {MAX_AGE} years")
    return _result(True, "Valid age")


def validate_email(value: Any) -> Dict[str, Any]:
    if not value or not isinstance(value, str):
        return _result(False, "Email is required")
    if not EMAIL_RE.match(value.strip()):
        return _result(False, "Please enter a valid email address")
    return _result(True, "Valid email")


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def validate_date(value: Any, today: Optional[date] = None) -> Dict[str, Any]:
    if not value or not isinstance(value, str):
        return _result(False, "Date is required")
    if not DATE_RE.match(value):
        return _result(False, "Date must be in YYYY-MM-DD format")
    try:
        requested = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return _result(False, "Date must be in YYYY-MM-DD format")

    today = today or date.today()
    if requested < today:
        return _result(False, "Please select a future date")
    if requested > _add_months(today, MAX_BOOKING_MONTHS):
        return _result(False, f"Please select a date within {MAX_BOOKING_MONTHS} months")
    return _result(True, "Valid date")


VALIDATION_RULES: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "name": validate_name,
    "age": validate_age,
    "email": validate_email,
    "date": validate_date,
}


def run_rule(validation_type: Optional[str], value: Any) -> Dict[str, Any]:
    """Apply a named rule; unknown or missing types always pass."""
    rule = VALIDATION_RULES.get(validation_type or "")
    if rule is None:
        return _result(True, "No validation required")
    return rule(value)


CONSULTATION_REQUIRED_FIELDS = (
    "fullName",
    "email",
    "phone",
    "age",
    "education",
    "currentStatus",
    "interestedService",
)


def validate_consultation_form(form: Dict[str, Any]) -> List[str]:
    """
    Check a booking form.

    Returns:
        Human-readable problems; empty when the form is acceptable
    """
    errors = []
    missing = [f for f in CONSULTATION_REQUIRED_FIELDS if not str(form.get(f) or "").strip()]
    if missing:
        errors.append(f"Missing required fields: {', '.join(missing)}")

    if "fullName" not in missing:
        check = validate_name(form["fullName"])
        if not check["valid"]:
            errors.append(check["message"])
    if "email" not in missing:
        check = validate_email(form["email"])
        if not check["valid"]:
            errors.append(check["message"])
    if "age" not in missing:
        check = validate_age(form["age"])
        if not check["valid"]:
            errors.append(check["message"])
    if "phone" not in missing:
        digits = re.sub(r"[\s\-()]", "", str(form["phone"]))
        if digits.startswith("+91"):
            digits = digits[3:]
        if not PHONE_RE.match(digits):
            errors.append("Phone number must be 10 digits")

    return errors


def missing_fields(payload: Dict[str, Any], required: tuple) -> List[str]:
    return [f for f in required if not payload.get(f)]
