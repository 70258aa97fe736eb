"""
HTTP API

Exposes the extraction endpoint consumed by voice clients, plus the expense
CRUD and category totals behind the expense screens.

Errors are returned as ``{"error": "<message>"}`` so clients can show the
message inline. Validation failures add an ``issues`` list.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expense_tracker.extraction.errors import ExtractionError, InvalidInputError
from expense_tracker.models.expense import (
    ExpenseCandidate,
    ExpenseCreateRequest,
    ExpenseSort,
    ExpenseUpdateRequest,
    ExtractionRequest,
)
from expense_tracker.orchestrator import ExpenseFlow, create_app_components
from expense_tracker.services.storage import NotFoundError, StorageError
from expense_tracker.validation import ExpenseValidationError

logger = structlog.get_logger()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _not_found() -> JSONResponse:
    return _error(404, "Expense not found")


def _parse_id(expense_id: str) -> Optional[UUID]:
    try:
        return UUID(expense_id)
    except ValueError:
        return None


def _validation_error(e: ExpenseValidationError) -> JSONResponse:
    return _error(
        400,
        str(e),
        issues=[issue.model_dump() for issue in e.result.issues],
    )


def create_app(flow: Optional[ExpenseFlow] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        flow: The ExpenseFlow to serve. Built from configuration when None.
    """
    app = FastAPI(
        title="Voice Expense Tracker",
        version="1.0.0",
        description="Expense tracking with voice input backed by Gemini.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if flow is None:
        flow, _ = create_app_components()
    app.state.flow = flow

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        issues = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part != "body"),
                "issue_type": err["type"],
                "message": err["msg"],
                "severity": "error",
            }
            for err in exc.errors()
        ]
        return _error(400, "Invalid request", issues=issues)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("storage_failed", path=request.url.path, error=str(exc))
        return _error(503, f"Storage unavailable: {exc}")

    @app.get("/")
    async def health_check():
        return {"status": "ok", "message": "Voice expense tracker API is running"}

    @app.post("/api/process-voice")
    async def process_voice(payload: ExtractionRequest):
        try:
            result = await app.state.flow.extract(payload.transcript, payload.language)
        except InvalidInputError as e:
            return _error(400, str(e))
        except ExtractionError as e:
            logger.warning("process_voice_failed", error=str(e), error_type=type(e).__name__)
            return _error(502, f"Failed to process voice input: {e}")
        except Exception as e:
            logger.exception("process_voice_crashed")
            await app.state.flow.audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"path": "/api/process-voice"},
            )
            return _error(500, f"Failed to process voice input: {e}")
        return result.to_response()

    @app.get("/api/expenses")
    async def list_expenses(
        username: Optional[str] = None,
        start_date: Optional[date] = Query(default=None, alias="startDate"),
        end_date: Optional[date] = Query(default=None, alias="endDate"),
        category: Optional[str] = None,
        sort: ExpenseSort = ExpenseSort.DATE_DESC,
    ):
        expenses = await app.state.flow.list_expenses(
            username=username or None,
            date_from=start_date,
            date_to=end_date,
            category=category or None,
            sort=sort,
        )
        return [expense.model_dump(mode="json") for expense in expenses]

    @app.post("/api/expenses", status_code=201)
    async def create_expense(payload: ExpenseCreateRequest):
        candidate = ExpenseCandidate(**payload.model_dump(include=set(ExpenseCandidate.model_fields)))
        try:
            expense, _ = await app.state.flow.create_expense(payload.username, candidate)
        except ExpenseValidationError as e:
            return _validation_error(e)
        return expense.model_dump(mode="json")

    @app.get("/api/expenses/{expense_id}")
    async def get_expense(expense_id: str):
        parsed = _parse_id(expense_id)
        expense = await app.state.flow.get_expense(parsed) if parsed else None
        if expense is None:
            return _not_found()
        return expense.model_dump(mode="json")

    @app.put("/api/expenses/{expense_id}")
    async def update_expense(expense_id: str, payload: ExpenseUpdateRequest):
        parsed = _parse_id(expense_id)
        if parsed is None:
            return _not_found()
        try:
            expense, _ = await app.state.flow.update_expense(parsed, payload)
        except NotFoundError:
            return _not_found()
        except ExpenseValidationError as e:
            return _validation_error(e)
        return expense.model_dump(mode="json")

    @app.delete("/api/expenses/{expense_id}")
    async def delete_expense(expense_id: str):
        parsed = _parse_id(expense_id)
        if parsed is None or not await app.state.flow.delete_expense(parsed):
            return _not_found()
        return {"success": True}

    @app.get("/api/categories")
    async def category_totals(
        username: Optional[str] = None,
        start_date: Optional[date] = Query(default=None, alias="startDate"),
        end_date: Optional[date] = Query(default=None, alias="endDate"),
    ):
        totals = await app.state.flow.category_totals(
            username=username or None,
            date_from=start_date,
            date_to=end_date,
        )
        return [total.model_dump(mode="json") for total in totals]

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    from expense_tracker.audit import configure_logging
    from expense_tracker.config import get_settings

    settings = get_settings().app
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)
