"""Celery app and background tasks."""
