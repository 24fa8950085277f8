"""Validation package."""

from onestop.validation.validator import ReceiptDraftValidator

__all__ = ["ReceiptDraftValidator"]
