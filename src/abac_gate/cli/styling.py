"""CLI output styling utilities.

Provides consistent styling helpers for CLI output:
- Cyan bold for section headers and labels
- Green for success messages and ALLOW (with checkmark)
- Red for error messages and DENY (with cross)
- Dim for neutral/empty state messages
"""

from __future__ import annotations

__all__ = [
    "style_decision",
    "style_dim",
    "style_error",
    "style_header",
    "style_label",
    "style_success",
    "style_warning",
]

import click


def style_header(title: str) -> str:
    """Style a section header with dashes.

    Example:
        >>> click.echo(style_header("Session"))
        --- Session ---
    """
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_label(label: str) -> str:
    """Style a label for list/summary headers (adds the colon)."""
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success message with checkmark."""
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark."""
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)


def style_warning(message: str) -> str:
    """Style a warning message with yellow color."""
    return click.style(f"Warning: {message}", fg="yellow", bold=True)


def style_decision(decision: str) -> str:
    """Style an ALLOW/DENY decision.

    Example:
        >>> click.echo(style_decision("ALLOW"))
        ✓ ALLOW
    """
    if decision == "ALLOW":
        return click.style(f"✓ {decision}", fg="green", bold=True)
    return click.style(f"✗ {decision}", fg="red", bold=True)
