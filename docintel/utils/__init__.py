"""Shared helpers: logging, JSON parsing, polling and library naming."""
