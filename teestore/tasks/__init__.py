"""Celery task definitions package."""

from teestore.tasks import pricing  # noqa: F401

__all__ = ["pricing"]
