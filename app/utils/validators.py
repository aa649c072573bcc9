"""Custom validation utilities."""

import re

import httpx

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(email: str) -> bool:
    """Loose e-mail shape check: something@domain.tld, no whitespace.

    Args:
        email: Address to validate

    Returns:
        bool: True if the address looks deliverable
    """
    return bool(_EMAIL_RE.match(email))


def validate_webhook_url(url: str) -> bool:
    """Webhook targets must be absolute http(s) URLs with a host httpx can address.

    The host is decoded the same way the delivery client decodes it.
    """
    try:
        parsed = httpx.URL(url)
        return parsed.scheme in ("http", "https") and bool(parsed.host)
    except (httpx.InvalidURL, ValueError):
        return False
