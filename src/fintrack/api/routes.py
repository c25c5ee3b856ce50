"""
FINTRACK API Routes

API base URL: /api/v1/
Callers identify themselves with the X-User-Id header; authentication is
handled upstream.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from fintrack import __version__
from fintrack.api.schemas import (
    ConversionResponse,
    ErrorResponse,
    HealthResponse,
    ProgressResponse,
    RemainingResponse,
    SavingsRequest,
    SpendRequest,
    SpendResponse,
    TransactionListResponse,
)
from fintrack.container import Services
from fintrack.conversion.errors import ConversionError, ConversionErrorKind
from fintrack.ledger.goals import GoalService
from fintrack.ledger.models import (
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Category,
    Goal,
    GoalCreate,
    GoalUpdate,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["FINTRACK"])

# Conversion failures the caller can fix by changing the request
CLIENT_ERROR_KINDS = {
    ConversionErrorKind.INVALID_CURRENCY_PAIR,
    ConversionErrorKind.UNSUPPORTED_CODE,
    ConversionErrorKind.MALFORMED_REQUEST,
}

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    502: {"model": ErrorResponse, "description": "Currency conversion failed"},
}


def _error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    }


def _http_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=_error_body(code, message))


def conversion_error_status(kind: ConversionErrorKind) -> int:
    if kind in CLIENT_ERROR_KINDS:
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_502_BAD_GATEWAY


async def conversion_error_handler(request: Request, exc: ConversionError) -> JSONResponse:
    """Render ConversionError without provider payloads; the cause goes to the log."""
    logger.error(
        f"{request.method} {request.url.path}: {exc} "
        f"(kind={exc.kind.value}, details={exc.details})"
    )
    return JSONResponse(
        status_code=conversion_error_status(exc.kind),
        content=_error_body(
            "FINTRACK_CONVERSION_FAILED",
            str(exc),
            {"kind": exc.kind.value},
        ),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


def _parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "FINTRACK_INVALID_AMOUNT", f"Invalid amount: {raw}")
    if not amount.is_finite() or amount <= 0:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "FINTRACK_INVALID_AMOUNT", "Amount must be positive")
    return amount


# === Conversion ===

@router.get(
    "/convert",
    response_model=ConversionResponse,
    summary="Convert an amount between currencies",
    responses=ERROR_RESPONSES,
)
async def convert_currency(
    request: Request,
    amount: str = Query(description="Amount in the source currency"),
    from_currency: str = Query(min_length=3, max_length=3),
    to_currency: str | None = Query(default=None, min_length=3, max_length=3),
) -> ConversionResponse:
    services = _services(request)
    value = _parse_amount(amount)
    source = from_currency.upper()
    target = (to_currency or services.converter.base_currency).upper()

    converted = await services.converter.convert(value, source, target)
    return ConversionResponse(
        amount=amount,
        from_currency=source,
        to_currency=target,
        converted_amount=converted,
    )


# === Transactions ===

@router.post(
    "/transactions",
    response_model=Transaction,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
    responses=ERROR_RESPONSES,
)
async def add_transaction(
    request: Request,
    payload: TransactionCreate,
    user_id: str = Header(alias="X-User-Id"),
) -> Transaction:
    return await _services(request).transactions.add_transaction(user_id, payload)


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="List the caller's transactions",
)
async def list_transactions(
    request: Request,
    user_id: str = Header(alias="X-User-Id"),
    type: TransactionType | None = None,
    category: Category | None = None,
    tag: str | None = None,
    start_date: datetime | None = Query(default=None, description="Earliest date, inclusive"),
    end_date: datetime | None = Query(default=None, description="Latest date, inclusive"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> TransactionListResponse:
    result = await _services(request).transactions.list_transactions(
        user_id,
        type=type,
        category=category,
        tag=tag,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return TransactionListResponse(
        total=result.total,
        page=result.page,
        limit=result.limit,
        transactions=result.transactions,
    )


@router.get(
    "/transactions/{transaction_id}",
    response_model=Transaction,
    summary="Get a transaction, optionally in another currency",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def get_transaction(
    request: Request,
    transaction_id: UUID,
    currency: str | None = Query(default=None, min_length=3, max_length=3),
) -> Transaction:
    try:
        return await _services(request).transactions.get_transaction(transaction_id, currency)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Transaction not found")


@router.put(
    "/transactions/{transaction_id}",
    response_model=Transaction,
    summary="Update a transaction",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def update_transaction(
    request: Request,
    transaction_id: UUID,
    changes: TransactionUpdate,
) -> Transaction:
    try:
        return await _services(request).transactions.update_transaction(transaction_id, changes)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Transaction not found")
    except ValueError as e:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "FINTRACK_INVALID_REQUEST", str(e))


@router.delete(
    "/transactions/{transaction_id}",
    summary="Delete a transaction",
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
)
async def delete_transaction(request: Request, transaction_id: UUID) -> dict[str, str]:
    try:
        await _services(request).transactions.delete_transaction(transaction_id)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Transaction not found")
    return {"message": "Transaction deleted successfully"}


# === Budgets ===

@router.post(
    "/budgets",
    response_model=Budget,
    status_code=status.HTTP_201_CREATED,
    summary="Create a budget",
    responses=ERROR_RESPONSES,
)
async def add_budget(
    request: Request,
    payload: BudgetCreate,
    user_id: str = Header(alias="X-User-Id"),
) -> Budget:
    return await _services(request).budgets.add_budget(user_id, payload)


@router.get(
    "/budgets/{budget_id}",
    response_model=Budget,
    summary="Get a budget",
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
)
async def get_budget(request: Request, budget_id: UUID) -> Budget:
    try:
        return await _services(request).budgets.get_budget(budget_id)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Budget not found.")


@router.put(
    "/budgets/{budget_id}",
    response_model=Budget,
    summary="Update a budget",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def update_budget(request: Request, budget_id: UUID, changes: BudgetUpdate) -> Budget:
    try:
        return await _services(request).budgets.update_budget(budget_id, changes)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Budget not found.")
    except ValueError as e:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "FINTRACK_INVALID_REQUEST", str(e))


@router.post(
    "/budgets/{budget_id}/spent",
    response_model=SpendResponse,
    summary="Add a spent amount to a budget",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def add_spent(request: Request, budget_id: UUID, payload: SpendRequest) -> SpendResponse:
    amount = _parse_amount(payload.amount)
    try:
        result = await _services(request).budgets.record_spend(budget_id, amount, payload.currency)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Budget not found.")
    except ValueError as e:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "FINTRACK_BUDGET_CLOSED", str(e))

    return SpendResponse(
        id=result.budget.budget_id,
        spent=f"{result.budget.spent:.2f}",
        exceeded=result.exceeded,
        message="Budget exceeded!" if result.exceeded else "Spent amount added successfully.",
    )


@router.get(
    "/budgets/{budget_id}/remaining",
    response_model=RemainingResponse,
    summary="Remaining budget percentage",
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
)
async def get_remaining(request: Request, budget_id: UUID) -> RemainingResponse:
    try:
        remaining = await _services(request).budgets.remaining_percentage(budget_id)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Budget not found.")
    return RemainingResponse(id=budget_id, remaining_percentage=remaining)


# === Goals ===

@router.post(
    "/goals",
    response_model=Goal,
    status_code=status.HTTP_201_CREATED,
    summary="Create a savings goal",
    responses=ERROR_RESPONSES,
)
async def add_goal(
    request: Request,
    payload: GoalCreate,
    user_id: str = Header(alias="X-User-Id"),
) -> Goal:
    return await _services(request).goals.add_goal(user_id, payload)


@router.get(
    "/goals/{goal_id}",
    response_model=Goal,
    summary="Get a savings goal",
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
)
async def get_goal(request: Request, goal_id: UUID) -> Goal:
    try:
        return await _services(request).goals.get_goal(goal_id)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Goal not found.")


@router.put(
    "/goals/{goal_id}",
    response_model=Goal,
    summary="Update a savings goal",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def update_goal(request: Request, goal_id: UUID, changes: GoalUpdate) -> Goal:
    try:
        return await _services(request).goals.update_goal(goal_id, changes)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Goal not found.")


@router.post(
    "/goals/{goal_id}/savings",
    response_model=ProgressResponse,
    summary="Add savings to a goal",
    responses={404: {"model": ErrorResponse, "description": "Not found"}, **ERROR_RESPONSES},
)
async def add_savings(request: Request, goal_id: UUID, payload: SavingsRequest) -> ProgressResponse:
    amount = _parse_amount(payload.amount)
    goals = _services(request).goals
    try:
        await goals.add_savings(goal_id, amount, payload.currency)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Goal not found.")
    return await _progress_response(goals, goal_id)


@router.get(
    "/goals/{goal_id}/progress",
    response_model=ProgressResponse,
    summary="Savings progress towards a goal",
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
)
async def get_progress(request: Request, goal_id: UUID) -> ProgressResponse:
    try:
        return await _progress_response(_services(request).goals, goal_id)
    except LookupError:
        raise _http_error(status.HTTP_404_NOT_FOUND, "FINTRACK_NOT_FOUND", "Goal not found.")


async def _progress_response(goals: GoalService, goal_id: UUID) -> ProgressResponse:
    goal = await goals.get_goal(goal_id)
    return ProgressResponse(
        id=goal.goal_id,
        saved_amount=f"{goal.saved_amount:.2f}",
        target_amount=f"{goal.target_amount:.2f}",
        currency=goal.currency,
        progress=await goals.progress(goal_id),
        is_completed=goal.is_completed,
    )


# === Health ===

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Health check for load balancers and monitoring",
    responses={503: {"model": ErrorResponse, "description": "Service unavailable"}},
)
async def health_check(request: Request) -> HealthResponse:
    """
    Returns HTTP 200 when the rate cache answers a ping, 503 otherwise.
    """
    services = _services(request)
    cache_ok = await services.cache.ping()
    if not cache_ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error_body(
                "FINTRACK_UNHEALTHY",
                "Service is not healthy",
                {"cache": "disconnected"},
            ),
        )
    return HealthResponse(
        status="healthy",
        version=__version__,
        cache="connected",
        base_currency=services.settings.base_currency,
    )
