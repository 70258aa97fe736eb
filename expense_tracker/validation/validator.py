"""
Two-Stage Expense Validation

Every expense goes through here before it is saved, whether it was typed into
the form or proposed by voice extraction. There is exactly one definition of
a valid expense.

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (amount, category)
- Format validation (numeric amount, YYYY-MM-DD date)
- Category membership
- Produces the typed ValidatedExpense

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Only warnings: the user may really have spent that much

IMPORTANT: Validation NEVER silently fixes issues.
Normalisations that change what the user entered (rounding, category casing)
are reported as info-level issues.
"""

import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Optional

from expense_tracker.config import get_settings
from expense_tracker.config.settings import AppSettings
from expense_tracker.models.expense import (
    CATEGORIES,
    Expense,
    ExpenseCandidate,
    ExpenseUpdateRequest,
    ValidatedExpense,
    ValidationIssue,
    ValidationResult,
)

MAX_DESCRIPTION_LENGTH = 500

_CURRENCY_PREFIX = re.compile(r"^(rs\.?|inr|usd|eur)\s*", re.IGNORECASE)
_AMOUNT_NOISE = re.compile(r"[\s,₹$€£¥]")

_CANONICAL_CATEGORIES = {label.casefold(): label for label in CATEGORIES}


class ExpenseValidationError(Exception):
    """Raised by the creation path when validation finds errors."""

    def __init__(self, result: ValidationResult):
        self.result = result
        errors = [issue.message for issue in result.issues if issue.severity == "error"]
        super().__init__("; ".join(errors) or "Expense is invalid")


class ExpenseValidator:
    """
    Validates expense input through a two-stage pipeline.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (suspicious values)
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._settings = settings or get_settings().app
        self._today = today or date.today

    # =========================================================================
    # FIELD PARSERS
    # =========================================================================

    def _parse_amount(self, raw: str) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        text = _AMOUNT_NOISE.sub("", _CURRENCY_PREFIX.sub("", (raw or "").strip()))
        if not text:
            return None, [ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter how much was spent, e.g. 250",
            )]

        try:
            amount = Decimal(text)
        except InvalidOperation:
            amount = None
        if amount is None or not amount.is_finite():
            return None, [ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount '{raw.strip()}' is not a number",
                severity="error",
                suggested_fix="Use digits only, e.g. 250 or 99.50",
            )]

        if amount <= 0:
            return None, [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            )]

        issues = []
        try:
            rounded = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None, [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount '{raw.strip()}' is too large",
                severity="error",
                suggested_fix="Enter the amount in digits, e.g. 250",
            )]
        if rounded != amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="rounded",
                message=f"Amount {amount} was rounded to {rounded}",
                severity="info",
            ))
        if rounded <= 0:
            return None, issues + [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be at least 0.01",
                severity="error",
            )]
        return rounded, issues

    def _parse_category(self, raw: str) -> tuple[Optional[str], list[ValidationIssue]]:
        text = (raw or "").strip()
        if not text:
            return None, [ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix=f"Choose one of: {', '.join(CATEGORIES)}",
            )]

        canonical = _CANONICAL_CATEGORIES.get(text.casefold())
        if canonical is None:
            return None, [ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"'{text}' is not a known category",
                severity="error",
                suggested_fix=f"Choose one of: {', '.join(CATEGORIES)}",
            )]

        issues = []
        if canonical != text:
            issues.append(ValidationIssue(
                field="category",
                issue_type="normalized",
                message=f"Category '{text}' was recorded as '{canonical}'",
                severity="info",
            ))
        return canonical, issues

    def _parse_date(self, raw: str) -> tuple[Optional[date], list[ValidationIssue]]:
        text = (raw or "").strip()
        if not text:
            return self._today(), []
        try:
            return datetime.strptime(text, "%Y-%m-%d").date(), []
        except ValueError:
            return None, [ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date '{text}' is not a valid YYYY-MM-DD date",
                severity="error",
                suggested_fix="Leave the date empty for today",
            )]

    def _parse_description(self, raw: str) -> tuple[Optional[str], list[ValidationIssue]]:
        text = (raw or "").strip()
        if len(text) > MAX_DESCRIPTION_LENGTH:
            return None, [ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description is longer than {MAX_DESCRIPTION_LENGTH} characters",
                severity="error",
            )]
        return text or None, []

    # =========================================================================
    # STAGES
    # =========================================================================

    def _validate_schema(
        self,
        candidate: ExpenseCandidate,
    ) -> tuple[bool, list[ValidationIssue], Optional[ValidatedExpense]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues, cleaned_expense_or_none)
        """
        issues = []

        amount, found = self._parse_amount(candidate.amount)
        issues.extend(found)
        category, found = self._parse_category(candidate.category)
        issues.extend(found)
        spent_on, found = self._parse_date(candidate.date)
        issues.extend(found)
        description, found = self._parse_description(candidate.description)
        issues.extend(found)

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)
        if not is_valid:
            return False, issues, None

        return True, issues, ValidatedExpense(
            amount=amount,
            category=category,
            description=description,
            date=spent_on,
        )

    def _validate_semantic(
        self,
        expense: ValidatedExpense,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        today = self._today()

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if expense.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        # Very old date check (often a misheard year)
        min_reasonable_date = today - timedelta(days=365 * 2)
        if expense.date < min_reasonable_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Expense date ({expense.date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the year",
            ))

        # Absurd amount check
        max_amount = Decimal(str(self._settings.max_expense_amount))
        if expense.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({expense.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, candidate: ExpenseCandidate) -> ValidationResult:
        """
        Run the two-stage pipeline over candidate-shaped input.

        Stage 2 only runs when stage 1 passes.
        """
        schema_valid, issues, expense = self._validate_schema(candidate)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(expense)
            issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
            expense=expense,
        )

    def validate_update(
        self,
        current: Expense,
        changes: ExpenseUpdateRequest,
    ) -> ValidationResult:
        """
        Validate a partial update by merging it over the stored expense.

        Fields left out of ``changes`` keep their stored values.
        """
        merged = ExpenseCandidate(
            amount=str(current.amount),
            category=current.category,
            description=current.description or "",
            date=current.date.isoformat(),
        )
        updates = changes.model_dump(exclude_none=True)
        return self.validate(merged.model_copy(update=updates))

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text for the UI: errors first, then warnings."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []
        if not result.schema_valid:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
