"""Storefront recommendation and personalization engine."""

__version__ = "1.0.0"
