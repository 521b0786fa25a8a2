"""FastAPI application exposing category, expense and budget endpoints."""
from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__, crud, database, schemas
from .auth import current_user_id
from .config import get_settings
from .logging import setup_logger
from .seed import seed_default_categories

LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logger("spendtrack")
    database.init_db()
    if get_settings().seed_on_startup:
        with database.session_scope() as session:
            seed_default_categories(session)
    yield


settings = get_settings()
app = FastAPI(title="Spendtrack Backend", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
router = APIRouter()


def _envelope(status_code: int, message: str, data: Any = None, meta: Any = None) -> dict[str, Any]:
    return {"status_code": status_code, "message": message, "data": data, "meta": meta}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_envelope(status_code, message))


@app.exception_handler(crud.ServiceError)
async def service_error_handler(_: Request, exc: crud.ServiceError) -> JSONResponse:
    return _error_response(exc.status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid input: " + "; ".join(details))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    LOG.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOG.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    LOG.info(
        "%s %s -> %d (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "user_id": request.headers.get("x-user-id"),
            "process_time_ms": elapsed_ms,
        },
    )
    return response


# Categories


@router.get("/categories/defaults", response_model=schemas.Envelope[List[schemas.CategoryRead]])
def list_default_categories(
    _: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    categories = [schemas.CategoryRead.model_validate(c) for c in crud.categories.list_default_categories(db)]
    return _envelope(status.HTTP_200_OK, "Fetched default categories successfully", categories)


@router.get("/categories", response_model=schemas.Envelope[List[schemas.CategoryRead]])
def list_categories(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    categories = [schemas.CategoryRead.model_validate(c) for c in crud.categories.list_categories(db, user_id)]
    return _envelope(status.HTTP_200_OK, "Categories retrieved successfully", categories)


@router.post(
    "/categories",
    response_model=schemas.Envelope[schemas.CategoryRead],
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    category_in: schemas.CategoryCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    category = crud.categories.create_category(db, user_id, category_in)
    return _envelope(
        status.HTTP_201_CREATED, "Category created successfully", schemas.CategoryRead.model_validate(category)
    )


@router.get("/categories/{category_id}", response_model=schemas.Envelope[schemas.CategoryRead])
def get_category(
    category_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    category = crud.categories.get_category(db, user_id, category_id)
    return _envelope(
        status.HTTP_200_OK, "Category details fetched successfully", schemas.CategoryRead.model_validate(category)
    )


@router.put("/categories/{category_id}", response_model=schemas.Envelope[schemas.CategoryRead])
def update_category(
    category_id: uuid.UUID,
    update_in: schemas.CategoryUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    category = crud.categories.update_category(db, user_id, category_id, update_in)
    return _envelope(
        status.HTTP_200_OK, "Category updated successfully", schemas.CategoryRead.model_validate(category)
    )


@router.delete("/categories/{category_id}", response_model=schemas.Envelope[Any])
def delete_category(
    category_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    crud.categories.delete_category(db, user_id, category_id)
    return _envelope(status.HTTP_200_OK, "Category deleted successfully")


# Receipts


@router.post(
    "/receipts",
    response_model=schemas.Envelope[schemas.ReceiptRead],
    status_code=status.HTTP_201_CREATED,
)
def create_receipt(
    receipt_in: schemas.ReceiptCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    receipt = crud.receipts.create_receipt(db, user_id, receipt_in)
    return _envelope(
        status.HTTP_201_CREATED, "Receipt created successfully", schemas.ReceiptRead.model_validate(receipt)
    )


@router.get("/receipts/{receipt_id}", response_model=schemas.Envelope[schemas.ReceiptRead])
def get_receipt(
    receipt_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    receipt = crud.receipts.get_receipt(db, user_id, receipt_id)
    return _envelope(status.HTTP_200_OK, "Receipt fetched successfully", schemas.ReceiptRead.model_validate(receipt))


# Expenses


@router.post(
    "/expenses",
    response_model=schemas.Envelope[schemas.ExpenseRead],
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: schemas.ExpenseCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    expense = crud.expenses.create_expense(db, user_id, expense_in)
    return _envelope(
        status.HTTP_201_CREATED, "Expense created successfully", schemas.ExpenseRead.model_validate(expense)
    )


@router.get("/expenses", response_model=schemas.Envelope[List[schemas.ExpenseRead]])
def list_expenses(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[uuid.UUID] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    sort: str = "date",
    order: str = "asc",
    page: int = 1,
    limit: int = 10,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    expenses, meta = crud.expenses.list_expenses(
        db,
        user_id,
        start_date=start_date,
        end_date=end_date,
        category_id=category_id,
        min_amount=min_amount,
        max_amount=max_amount,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    items = [schemas.ExpenseRead.model_validate(e) for e in expenses]
    return _envelope(status.HTTP_200_OK, "Expenses fetched successfully", items, meta)


@router.get("/expenses/analysis", response_model=schemas.Envelope[schemas.ExpenseAnalysisRead])
def expense_analysis(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[uuid.UUID] = None,
    period: str = "month",
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    analysis = crud.expenses.analyze_expenses(
        db,
        user_id,
        start_date=start_date,
        end_date=end_date,
        category_id=category_id,
        period=period,
    )
    message = "Expense analysis fetched successfully"
    if analysis.failed_sections:
        message = "Expense analysis partially fetched; failed sections: " + ", ".join(analysis.failed_sections)
    return _envelope(status.HTTP_200_OK, message, analysis)


@router.get("/expenses/{expense_id}", response_model=schemas.Envelope[schemas.ExpenseRead])
def get_expense(
    expense_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    expense = crud.expenses.get_expense(db, user_id, expense_id)
    return _envelope(status.HTTP_200_OK, "Expense fetched successfully", schemas.ExpenseRead.model_validate(expense))


@router.put("/expenses/{expense_id}", response_model=schemas.Envelope[schemas.ExpenseRead])
def update_expense(
    expense_id: uuid.UUID,
    update_in: schemas.ExpenseUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    expense = crud.expenses.update_expense(db, user_id, expense_id, update_in)
    return _envelope(status.HTTP_200_OK, "Expense updated successfully", schemas.ExpenseRead.model_validate(expense))


@router.delete("/expenses/{expense_id}", response_model=schemas.Envelope[Any])
def delete_expense(
    expense_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    crud.expenses.delete_expense(db, user_id, expense_id)
    return _envelope(status.HTTP_200_OK, "Expense deleted successfully")


# Budgets


@router.post(
    "/budgets",
    response_model=schemas.Envelope[schemas.BudgetRead],
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    budget_in: schemas.BudgetCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    budget = crud.budgets.create_budget(db, user_id, budget_in)
    return _envelope(status.HTTP_201_CREATED, "Budget created successfully", schemas.BudgetRead.model_validate(budget))


@router.get("/budgets", response_model=schemas.Envelope[List[schemas.BudgetRead]])
def list_budgets(
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    budgets = crud.budgets.list_budgets(
        db,
        user_id,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        period=period,
        status=status_filter,
    )
    items = [schemas.BudgetRead.model_validate(b) for b in budgets]
    return _envelope(status.HTTP_200_OK, "Budgets fetched successfully", items)


@router.get("/budgets/analysis", response_model=schemas.Envelope[List[schemas.BudgetAnalysisItem]])
def budget_analysis(
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    results = crud.budgets.analyze_budgets(
        db,
        user_id,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
    )
    if not results:
        return _envelope(status.HTTP_200_OK, "No budgets found for the specified period", [])
    return _envelope(status.HTTP_200_OK, "Budget analysis fetched successfully", results)


@router.get("/budgets/{budget_id}", response_model=schemas.Envelope[schemas.BudgetRead])
def get_budget(
    budget_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    budget = crud.budgets.get_budget(db, user_id, budget_id)
    return _envelope(status.HTTP_200_OK, "Budget fetched successfully", schemas.BudgetRead.model_validate(budget))


@router.put("/budgets/{budget_id}", response_model=schemas.Envelope[schemas.BudgetRead])
def update_budget(
    budget_id: uuid.UUID,
    update_in: schemas.BudgetUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    budget = crud.budgets.update_budget(db, user_id, budget_id, update_in)
    return _envelope(status.HTTP_200_OK, "Budget updated successfully", schemas.BudgetRead.model_validate(budget))


@router.delete("/budgets/{budget_id}", response_model=schemas.Envelope[Any])
def delete_budget(
    budget_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(database.get_db),
) -> dict[str, Any]:
    crud.budgets.delete_budget(db, user_id, budget_id)
    return _envelope(status.HTTP_200_OK, "Budget deleted successfully")


app.include_router(router, prefix=settings.api_prefix)


@app.get("/health", tags=["system"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
