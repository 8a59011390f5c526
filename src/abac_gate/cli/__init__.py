"""Command-line interface for abac-gate.

Provides commands for configuration, store initialization, ad-hoc
evaluation, session management and serving the HTTP API.
"""

from .main import cli, main

__all__ = ["cli", "main"]
