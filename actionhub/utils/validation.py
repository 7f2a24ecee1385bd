"""Small field validators shared by the services."""

from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from actionhub.core.exceptions import ValidationError


def normalize_email(value, field="email"):
    """Validate an address and return it lower-cased (Google addresses are case-insensitive)."""
    if not value or not str(value).strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        valid = validate_email(str(value).strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid {field}: {e}", details={field: "invalid"}) from e
    return valid.normalized.lower()


def require_text(data, field, max_length=200):
    """Return the stripped, non-empty string at data[field] or raise."""
    value = (data.get(field) or "")
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    value = value.strip()
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if len(value) > max_length:
        raise ValidationError(f"{field} must be ≤ {max_length} characters", details={field: "too_long"})
    return value


def is_http_url(value):
    parsed = urlparse(value or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def require_string_list(data, field):
    """Return data[field] as a de-duplicated list of strings (order kept)."""
    value = data.get(field)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise ValidationError(f"{field} must be a list of ids", details={field: "invalid"})
    return list(dict.fromkeys(value))
