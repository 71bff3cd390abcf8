"""Workflow engine services."""
