"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability from transcript to saved expense
2. Debugging capability when the model proposes something odd
3. User can see history of their interactions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines through the stdlib root logger at ``level``."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transcript_received(
        self,
        transcript: str,
        language: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transcript arriving for extraction."""
        await self.log(AuditEventBuilder.transcript_received(
            transcript=transcript,
            language=language,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        candidate: dict,
        detected_language: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log what the model proposed."""
        await self.log(AuditEventBuilder.extraction_completed(
            candidate=candidate,
            detected_language=detected_language,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
        raw_response: Optional[str] = None,
    ) -> None:
        """Log an extraction failure."""
        await self.log(AuditEventBuilder.extraction_failed(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
            raw_response=raw_response,
        ))

    async def log_validation_failed(
        self,
        username: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            username=username,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_user_confirmed(
        self,
        username: str,
        candidate: dict,
        correlation_id: UUID,
    ) -> None:
        """Log user confirmation of a voice candidate."""
        await self.log(AuditEventBuilder.user_confirmed(
            username=username,
            candidate=candidate,
            correlation_id=correlation_id,
        ))

    async def log_user_rejected(
        self,
        username: Optional[str],
        reason: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log user rejection."""
        await self.log(AuditEventBuilder.user_rejected(
            username=username,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_expense_saved(
        self,
        expense_id: UUID,
        username: str,
        amount: str,
        category: str,
        source: str,
        correlation_id: UUID,
    ) -> None:
        """Log expense save."""
        await self.log(AuditEventBuilder.expense_saved(
            expense_id=expense_id,
            username=username,
            amount=amount,
            category=category,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: UUID,
        username: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            username=username,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one voice attempt).
    Pass it through all subsequent operations.
    """
    return uuid4()
