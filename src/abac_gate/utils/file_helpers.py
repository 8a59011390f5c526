"""File helpers for the JSON config file.

- get_app_dir: OS-appropriate application directory
- write_private_json: write JSON readable by the owner only
- read_model_json: read JSON and validate it into a Pydantic model, with
  errors that point at the offending field and at how to recover
"""

from __future__ import annotations

__all__ = [
    "get_app_dir",
    "read_model_json",
    "write_private_json",
]

import json
import sys
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import BaseModel, ValidationError

from abac_gate.constants import APP_NAME

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_app_dir() -> Path:
    """Application directory from click.get_app_dir().

    - macOS: ~/Library/Application Support/abac-gate
    - Linux: ~/.config/abac-gate (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\abac-gate
    """
    return Path(click.get_app_dir(APP_NAME))


def _chmod_private(path: Path, mode: int) -> None:
    if sys.platform != "win32":
        path.chmod(mode)


def write_private_json(path: Path, data: Any) -> None:
    """Write data as indented JSON; directory 0o700, file 0o600.

    The config names the store URL, which may embed credentials.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    _chmod_private(path.parent, 0o700)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    _chmod_private(path, 0o600)


def read_model_json(
    path: Path,
    model_class: type[ModelT],
    *,
    what: str,
    recovery_hint: str | None = None,
) -> ModelT:
    """Read a JSON file and validate it against model_class.

    Args:
        path: File to read.
        model_class: Pydantic model to validate into.
        what: Short name for messages (e.g. "config").
        recovery_hint: Appended to validation errors.

    Raises:
        FileNotFoundError: If the file does not exist (message suggests
            'abac-gate config init').
        ValueError: If the file is unreadable, not JSON, or fails validation.
            Validation messages list every failing field as ``a.b: msg``.
    """
    if not path.exists():
        raise FileNotFoundError(
            f"{what.capitalize()} file not found at {path}.\nRun 'abac-gate config init' to create one."
        )

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {what} file {path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {what} file {path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        lines = [f"Invalid {what} file {path}:"]
        lines += [f"  - {'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        if recovery_hint:
            lines.append(recovery_hint)
        raise ValueError("\n".join(lines)) from e
