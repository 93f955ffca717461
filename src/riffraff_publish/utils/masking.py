"""Masking helpers for debug output and reprs."""

from __future__ import annotations

from collections.abc import Mapping

# Substring match against field names, case-insensitive.
SENSITIVE_FIELD_MARKERS = ("token", "secret", "password")


def redact_fields(fields: Mapping[str, object], mask: str = "***") -> dict[str, object]:
    """Copy ``fields`` with the value of every sensitive-looking name replaced."""
    return {
        name: mask if any(marker in name.lower() for marker in SENSITIVE_FIELD_MARKERS) else value
        for name, value in fields.items()
    }


def mask_value(value: str, visible: int = 4) -> str:
    """Keep a short prefix of ``value`` for correlation, hide the rest."""
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"
