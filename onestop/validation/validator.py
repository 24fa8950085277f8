"""
Two-Stage Validation of Receipt Scans

A receipt scan is a PROPOSAL from the AI model. Before the UI offers it
for confirmation it goes through two stages:

STAGE 1 - SCHEMA VALIDATION:
- Was anything recognised at all
- Amount present and a real number

STAGE 2 - SEMANTIC VALIDATION:
- Amount positive and not absurdly small
- Category is a known expense category
- Date present, not in the future, not unusually old

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import timedelta
from decimal import Decimal

from onestop.config import get_settings
from onestop.models.transaction import (
    EXPENSE_CATEGORIES,
    MAX_AMOUNT,
    ReceiptScan,
    ValidationIssue,
    ValidationResult,
    utcnow,
)


class ReceiptDraftValidator:
    """
    Validates a receipt scan through a two-stage pipeline.

    Stage 2 only runs when stage 1 passes.
    """

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        scan: ReceiptScan,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not scan.is_receipt:
            issues.append(ValidationIssue(
                field="receipt",
                issue_type="empty",
                message="This image does not look like a receipt",
                severity="error",
                suggested_fix="Please try with a clearer photo of the receipt",
            ))
            return False, issues

        if scan.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Total amount was not found on the receipt",
                severity="error",
                suggested_fix="Enter the amount manually",
            ))
        elif not scan.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="not_a_number",
                message="Total amount could not be read as a number",
                severity="error",
                suggested_fix="Enter the amount manually",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        scan: ReceiptScan,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        now = utcnow()

        if scan.amount is not None and scan.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Total amount must be greater than zero",
                severity="error",
                suggested_fix="Check if the amount was read correctly",
            ))
        elif scan.amount is not None and scan.amount > MAX_AMOUNT:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Total amount must not exceed {MAX_AMOUNT}",
                severity="error",
                suggested_fix="Check if the amount was read correctly",
            ))
        elif scan.amount is not None and scan.amount < Decimal("0.10"):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({scan.amount}) seems unusually low",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if not scan.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category was suggested",
                severity="warning",
                suggested_fix="Choose a category",
            ))
        elif scan.category.lower() not in EXPENSE_CATEGORIES:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Unknown category: {scan.category}",
                severity="warning",
                suggested_fix="Choose one of the listed categories",
            ))

        if scan.date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Receipt date was not found",
                severity="warning",
                suggested_fix="Today's date will be used unless you change it",
            ))
        else:
            max_future = now + timedelta(days=self._settings.future_date_tolerance_days)
            if scan.date > max_future:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Receipt date ({scan.date.date()}) is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))
            elif scan.date < now - timedelta(days=365 * 2):
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="suspicious_date",
                    message=f"Receipt date ({scan.date.date()}) seems unusually old",
                    severity="warning",
                    suggested_fix="Please verify the date was read correctly",
                ))

        if not scan.merchant_name:
            issues.append(ValidationIssue(
                field="merchant_name",
                issue_type="missing",
                message="Merchant name was not found",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, scan: ReceiptScan) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(scan)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(scan)
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summary of the validation result for the review screen."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []
        if not result.is_valid:
            lines.append("❌ This receipt needs attention before it can be saved:")
            lines.extend(f"  • {issue.message}" for issue in result.issues if issue.severity == "error")
        if result.warnings:
            lines.append("⚠️ Please double-check:")
            lines.extend(f"  • {warning}" for warning in result.warnings)
        return "\n".join(lines)
