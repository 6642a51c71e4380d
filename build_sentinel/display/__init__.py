"""Logging setup and terminal output helpers."""
