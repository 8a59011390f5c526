"""Logging for abac-gate.

- iso_formatter: JSONL lines with ISO 8601 UTC timestamps
- logger_setup: the decision audit logger and the system log handler
- logging_helpers: audit event serialization

Import directly from submodules to avoid circular imports:
    from abac_gate.utils.logging.logger_setup import configure_package_logging
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
