from errors import ValidationError


def require_number(name: str, value, *, minimum: float = 0.0, strict: bool = False) -> float:
    """Return ``value`` as a float, rejecting booleans and out-of-range values."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be numeric")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be numeric")
    if number != number:
        raise ValidationError(f"{name} must be numeric")
    if strict and number <= minimum:
        raise ValidationError(f"{name} must be greater than {minimum:g}")
    if not strict and number < minimum:
        raise ValidationError(f"{name} must be at least {minimum:g}")
    return number


def require_int(name: str, value, *, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{name} must be an integer")
    if number < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    return number


def require_text(name: str, value) -> str:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{name} is required")
    return text
