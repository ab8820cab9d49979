"""ORM models for onboarding_db."""

from onboarding_db.models.base import Base
from onboarding_db.models.progress import OnboardingProgress

__all__ = ["Base", "OnboardingProgress"]
