"""
Audit Models for the Voice Expense Tracker

Every significant action in the system is logged for audit purposes:
transcripts sent for extraction, what the model proposed, what the user
finally saved. Audit logs are append-only.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Voice extraction
    TRANSCRIPT_RECEIVED = "transcript_received"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # User actions
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"

    # Persistence
    EXPENSE_SAVED = "expense_saved"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'transcript')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - ties together one extraction and the save that follows it
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    username: Optional[str] = Field(
        default=None,
        description="User namespace the event belongs to, if any"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "username": self.username,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, username]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.error_message or "",
            self.username or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transcript_received(transcript, language, correlation_id)
        event = AuditEventBuilder.expense_saved(expense, source, correlation_id)
    """

    @staticmethod
    def transcript_received(
        transcript: str,
        language: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPT_RECEIVED,
            entity_type="transcript",
            correlation_id=correlation_id,
            description="Voice transcript received for extraction",
            details={
                "transcript": transcript,
                "language": language,
            },
        )

    @staticmethod
    def extraction_completed(
        candidate: dict,
        detected_language: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="transcript",
            correlation_id=correlation_id,
            description="Model proposed an expense candidate",
            details={
                "candidate": candidate,
                "detected_language": detected_language,
            },
        )

    @staticmethod
    def extraction_failed(
        error_type: str,
        error_message: str,
        correlation_id: UUID,
        raw_response: Optional[str] = None,
    ) -> AuditEvent:
        details = {"error_type": error_type}
        if raw_response is not None:
            details["raw_response"] = raw_response[:1000]
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transcript",
            correlation_id=correlation_id,
            description=f"Extraction failed: {error_type}",
            error_message=error_message,
            details=details,
        )

    @staticmethod
    def validation_failed(
        username: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense validation failed with {len(issues)} issues",
            details={"issues": issues},
            username=username,
        )

    @staticmethod
    def user_confirmed(
        username: str,
        candidate: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="transcript",
            correlation_id=correlation_id,
            description="User confirmed the extracted expense",
            details={"candidate": candidate},
            username=username,
        )

    @staticmethod
    def user_rejected(
        username: Optional[str],
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REJECTED,
            entity_type="transcript",
            correlation_id=correlation_id,
            description="User rejected the extracted expense",
            details={"reason": reason or "No reason provided"},
            username=username,
        )

    @staticmethod
    def expense_saved(
        expense_id: UUID,
        username: str,
        amount: str,
        category: str,
        source: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {category} - {amount}",
            details={
                "amount": amount,
                "category": category,
                "source": source,
            },
            username=username,
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        username: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            username=username,
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
