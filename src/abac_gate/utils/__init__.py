"""Shared utilities for abac-gate.

Import directly from submodules to avoid circular imports:
    from abac_gate.utils.file_helpers import read_model_json
    from abac_gate.utils.logging.logger_setup import setup_jsonl_logger
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
