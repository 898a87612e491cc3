"""Persistence adapters for the workflow service."""

from app.repositories.workflow_repository import SqlWorkflowRepository  # noqa: F401
