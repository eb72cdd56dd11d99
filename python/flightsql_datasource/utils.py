"""Utility functions for the Flight SQL datasource."""

import re


def mask_token(token: str) -> str:
    """
    Mask a bearer token for safe logging.

    Examples:
    - "" → "<empty>"
    - "abc" → "***"
    - "apiv3_0123456789" → "apiv***"

    Args:
        token: The bearer token to mask

    Returns:
        At most the first four characters followed by ***
    """
    if not token:
        return "<empty>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}***"


def redact_bearer(text: str) -> str:
    """
    Replace bearer credentials embedded in text (e.g. an error message).

    Args:
        text: Message that may contain "Bearer <token>"

    Returns:
        Text with every bearer token replaced by ***
    """
    return re.sub(r"(?i)(bearer\s+)\S+", r"\1***", text)
