"""
Main Orchestrator for the Voice Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Voice extraction (transcript → prompt → model → parsed candidate)
2. Expense creation (candidate or form input → validate → save)
3. Expense maintenance (list, update, delete, category totals)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Extraction only PROPOSES; nothing is saved from the model directly
- Voice and manual entries go through the same validation
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.agents import ExpenseExtractionAgent
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.extraction.errors import (
    ExtractionError,
    ExtractionNetworkError,
    ExtractionParseError,
    InvalidInputError,
)
from expense_tracker.extraction.prompt import AUTO_LANGUAGE
from expense_tracker.models.expense import (
    CategoryTotal,
    Expense,
    ExpenseCandidate,
    ExpenseSort,
    ExpenseUpdateRequest,
    ExtractionResult,
    USERNAME_MAX_LENGTH,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)
from expense_tracker.validation import ExpenseValidationError, ExpenseValidator

logger = structlog.get_logger()


def _issue_dicts(result: ValidationResult) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in result.issues
        if i.severity == "error"
    ]


class ExpenseFlow:
    """
    Orchestrates voice extraction and expense persistence.

    Flow for a voice entry:
    1. Extract → Model proposes a candidate (audited)
    2. Review → User edits/confirms in the UI (not here)
    3. Create → Same validation as manual entry, then save

    The extraction agent is created on first use, so expense screens keep
    working when Gemini is not configured.
    """

    def __init__(
        self,
        agent: Optional[ExpenseExtractionAgent] = None,
        validator: Optional[ExpenseValidator] = None,
        expense_storage: Optional[ExpenseStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._validator = validator or ExpenseValidator()
        self._expense_storage = expense_storage or InMemoryExpenseStorage()
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def validator(self) -> ExpenseValidator:
        return self._validator

    def _get_agent(self) -> ExpenseExtractionAgent:
        if self._agent is None:
            try:
                self._agent = ExpenseExtractionAgent()
            except Exception as e:
                raise ExtractionNetworkError(f"Extraction model is not configured: {e}") from e
        return self._agent

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    async def extract(
        self,
        transcript: str,
        language: str = AUTO_LANGUAGE,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Turn a transcript into an expense candidate.

        Raises:
            InvalidInputError: Blank transcript (nothing is audited or sent).
            ExtractionNetworkError / ExtractionParseError: Extraction failed.
        """
        if transcript is None or not transcript.strip():
            raise InvalidInputError("Transcript is required")

        correlation_id = correlation_id or create_correlation_id()
        language = language or AUTO_LANGUAGE

        await self._audit_logger.log_transcript_received(
            transcript=transcript,
            language=language,
            correlation_id=correlation_id,
        )

        try:
            result = await self._get_agent().extract(transcript, language)
        except ExtractionParseError as e:
            await self._audit_logger.log_extraction_failed(
                error_type="parse_error",
                error_message=str(e),
                correlation_id=correlation_id,
                raw_response=e.raw_response,
            )
            raise
        except ExtractionNetworkError as e:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_extraction_failed(
                error_type="network_error",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except ExtractionError as e:
            await self._audit_logger.log_extraction_failed(
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_extraction_completed(
            candidate=result.candidate.model_dump(),
            detected_language=result.detected_language,
            correlation_id=correlation_id,
        )
        return result

    async def reject_extraction(
        self,
        username: Optional[str] = None,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Record that user discarded a proposed expense.

        Called when the user retries or cancels from the review screen.
        """
        await self._audit_logger.log_user_rejected(
            username=username,
            reason=reason,
            correlation_id=correlation_id or create_correlation_id(),
        )

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_expense(
        self,
        username: str,
        payload: ExpenseCandidate,
        source: str = "manual",
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, ValidationResult]:
        """
        Validate and save an expense.

        Args:
            username: Owner namespace
            payload: Candidate-shaped input (form fields or a voice proposal)
            source: "manual" or "voice", recorded in the audit trail

        Returns:
            (saved_expense, validation_result) - the result carries warnings

        Raises:
            ExpenseValidationError: Input has errors; nothing was saved
            StorageError: Saving failed
        """
        correlation_id = correlation_id or create_correlation_id()
        username = (username or "").strip()

        if source == "voice":
            await self._audit_logger.log_user_confirmed(
                username=username,
                candidate=payload.model_dump(),
                correlation_id=correlation_id,
            )

        result = self._validator.validate(payload)
        if not username:
            result = ValidationResult(
                schema_valid=False,
                semantic_valid=False,
                issues=[ValidationIssue(
                    field="username",
                    issue_type="missing",
                    message="Username is required",
                    severity="error",
                )] + result.issues,
            )
        elif len(username) > USERNAME_MAX_LENGTH:
            result = ValidationResult(
                schema_valid=False,
                semantic_valid=False,
                issues=[ValidationIssue(
                    field="username",
                    issue_type="invalid_value",
                    message=f"Username must be at most {USERNAME_MAX_LENGTH} characters",
                    severity="error",
                )] + result.issues,
            )

        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                username=username or None,
                issues=_issue_dicts(result),
                correlation_id=correlation_id,
            )
            raise ExpenseValidationError(result)

        expense = Expense(username=username, **result.expense.model_dump())

        try:
            await self._expense_storage.save_expense(expense)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_expense_saved(
            expense_id=expense.id,
            username=username,
            amount=str(expense.amount),
            category=expense.category,
            source=source,
            correlation_id=correlation_id,
        )
        return expense, result

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return await self._expense_storage.get_expense(expense_id)

    async def update_expense(
        self,
        expense_id: UUID,
        changes: ExpenseUpdateRequest,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, ValidationResult]:
        """
        Apply a partial, validated update.

        Raises:
            NotFoundError: No expense with this ID
            ExpenseValidationError: The merged expense is invalid
        """
        correlation_id = correlation_id or create_correlation_id()

        current = await self._expense_storage.get_expense(expense_id)
        if current is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        result = self._validator.validate_update(current, changes)
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                username=current.username,
                issues=_issue_dicts(result),
                correlation_id=correlation_id,
            )
            raise ExpenseValidationError(result)

        fields = result.expense.model_dump()
        changed = [name for name, value in fields.items() if getattr(current, name) != value]
        updated = current.model_copy(update={**fields, "updated_at": datetime.utcnow()})

        await self._expense_storage.update_expense(updated)
        await self._audit_logger.log_expense_updated(
            expense_id=updated.id,
            username=updated.username,
            changed_fields=changed,
            correlation_id=correlation_id,
        )
        return updated, result

    async def delete_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        deleted = await self._expense_storage.delete_expense(expense_id)
        if deleted:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return deleted

    async def list_expenses(
        self,
        username: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[str] = None,
        sort: ExpenseSort = ExpenseSort.DATE_DESC,
    ) -> list[Expense]:
        return await self._expense_storage.list_expenses(
            username=username,
            date_from=date_from,
            date_to=date_to,
            category=category,
            sort=sort,
        )

    async def category_totals(
        self,
        username: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        return await self._expense_storage.totals_by_category(
            username=username,
            date_from=date_from,
            date_to=date_to,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[ExpenseFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.

    Returns:
        (expense_flow, sheets_client) - sheets_client is None when running
        on in-memory storage
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            expense_storage = InMemoryExpenseStorage()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        expense_storage = InMemoryExpenseStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    flow = ExpenseFlow(
        expense_storage=expense_storage,
        audit_logger=audit_logger,
    )
    return flow, sheets_client
