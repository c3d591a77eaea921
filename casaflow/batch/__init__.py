"""Scheduled portfolio reviews and proactive scanners."""

from .models import PropertySnapshot
from .prompts import build_daily_review, build_monthly_review, build_weekly_review

__all__ = [
    "PropertySnapshot",
    "build_daily_review",
    "build_monthly_review",
    "build_weekly_review",
]
