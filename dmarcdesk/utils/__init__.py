"""Shared helpers used by the blueprints and the CLI scripts."""
