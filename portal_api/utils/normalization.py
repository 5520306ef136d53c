"""Data normalization utilities for consistent data quality."""


def normalize_email(email: str | None) -> str | None:
    """Trim and lowercase an email address."""
    if email is None:
        return None
    return email.strip().lower()


def normalize_name(name: str | None) -> str | None:
    """Collapse internal whitespace."""
    if name is None:
        return None
    return " ".join(name.split())
