"""
Core Data Models for the Voice Expense Tracker

These models define the schemas for all data flowing through the system:
1. ExpenseCandidate - what extraction PROPOSES (unvalidated strings)
2. Expense - what is actually persisted (validated, typed)
3. Validation and summary models shared by the API and the UI

An ExpenseCandidate is never persisted directly. It always goes through the
same validation path as a manually typed expense.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD = "Food"
    HOUSING = "Housing"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    SHOPPING = "Shopping"
    EDUCATION = "Education"
    PERSONAL = "Personal"
    TRAVEL = "Travel"
    OTHER = "Other"


CATEGORIES: list[str] = [category.value for category in ExpenseCategory]


class ExpenseSort(str, Enum):
    """Orderings offered by the expense list."""
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"


CANDIDATE_FIELDS = ("amount", "category", "description", "date")
USERNAME_MAX_LENGTH = 100


# =============================================================================
# EXTRACTION MODELS
# =============================================================================

class ExpenseCandidate(BaseModel):
    """
    Structured result of voice extraction.

    CRITICAL: This is PROPOSED data, NOT verified.
    Every field is a plain string so user-entered formatting survives until
    the creation path coerces it. Missing values are empty strings, never None.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)

    amount: str = ""
    category: str = ""
    description: str = ""
    date: str = Field(
        default="",
        description="YYYY-MM-DD, or empty for 'today'"
    )

    @field_validator(*CANDIDATE_FIELDS, mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class ExtractionRequest(BaseModel):
    """Body of POST /api/process-voice."""

    transcript: str = ""
    language: str = Field(
        default="auto",
        description="Language tag such as en-US, or 'auto' to detect from content"
    )

    @field_validator("transcript", mode="before")
    @classmethod
    def transcript_none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("language", mode="before")
    @classmethod
    def language_default(cls, v):
        return v or "auto"


class ExtractionResult(BaseModel):
    """A parsed candidate plus the language the server believes was spoken."""

    candidate: ExpenseCandidate
    detected_language: Optional[str] = None

    def to_response(self) -> dict:
        """Flatten into the wire shape of the extraction endpoint."""
        payload = self.candidate.model_dump()
        if self.detected_language:
            payload["detectedLanguage"] = self.detected_language
        return payload


# =============================================================================
# PERSISTED EXPENSE
# =============================================================================

class Expense(BaseModel):
    """
    An expense that passed validation and was saved.

    Expenses are namespaced per username.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    username: str = Field(
        ...,
        min_length=1,
        max_length=USERNAME_MAX_LENGTH,
        description="Owner of the expense"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Expense amount"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="One of CATEGORIES"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    date: dt.date = Field(
        ...,
        description="Day the money was spent"
    )
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
    )

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


class ExpenseCreateRequest(ExpenseCandidate):
    """Body of POST /api/expenses: a candidate plus its owner."""

    username: str = Field(..., min_length=1, max_length=USERNAME_MAX_LENGTH)


class ExpenseUpdateRequest(BaseModel):
    """Body of PUT /api/expenses/{id}. Omitted fields are left unchanged."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    amount: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None


class CategoryTotal(BaseModel):
    """Sum of expenses in one category."""

    category: str
    total: Decimal

    @field_serializer("total", when_used="json")
    def serialize_total(self, total: Decimal) -> float:
        return float(total)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggestion for how to fix the issue"
    )


class ValidatedExpense(BaseModel):
    """Typed expense fields produced by a successful validation."""

    amount: Decimal
    category: str
    description: Optional[str] = None
    date: dt.date


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (suspicious values)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    expense: Optional[ValidatedExpense] = Field(
        default=None,
        description="Cleaned fields, present only when schema validation passed"
    )

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.expense is not None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
