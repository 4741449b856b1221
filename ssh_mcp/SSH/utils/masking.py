"""Masking helpers for safe logging/debugging.

These utilities avoid accidentally leaking secrets in logs and results.
"""

import re


def mask_value(value: str | None) -> str:
    """Mask a value by replacing every other character with "*".

    Args:
        value: A string to mask, or None.

    Returns:
        A masked representation; empty string if value is falsy.
    """
    if not value:
        return ""
    return "".join("*" if i % 2 else c for i, c in enumerate(value))


_SUDO_PROMPTS = (
    re.compile(r"\[sudo\] password for [^:]*:"),
    re.compile(r"Password:"),
)


def strip_sudo_prompts(text: str) -> str:
    """Remove sudo password prompts from captured output."""
    for pattern in _SUDO_PROMPTS:
        text = pattern.sub("", text)
    return text.strip()


def redact(text: str, secret: str | None) -> str:
    """Remove every literal occurrence of `secret` from `text`."""
    if not secret:
        return text
    return text.replace(secret, "")
