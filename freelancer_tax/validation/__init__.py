"""Draft validation package."""

from freelancer_tax.validation.validator import DraftValidator

__all__ = ["DraftValidator"]
