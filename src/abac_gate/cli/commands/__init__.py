"""CLI subcommands for abac-gate."""
