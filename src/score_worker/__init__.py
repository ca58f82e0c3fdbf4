"""Celery worker recomputing cached popularity scores."""
