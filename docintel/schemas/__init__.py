"""Pydantic models shared across services and routes."""
