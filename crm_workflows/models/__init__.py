"""Pydantic definition models and SQLModel tables."""
