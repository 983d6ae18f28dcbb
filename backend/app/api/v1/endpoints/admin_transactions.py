"""
Admin Ledger API Endpoints.

Manual sales and expenses, ledger listing, financial summary and
administrative deletion.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.domain.billing.ledger_service import LedgerService, DEFAULT_SORT
from backend.app.models.enums import UserRole
from backend.app.models.ledger_enums import TransactionType
from backend.app.models.locale_enums import Country
from backend.app.schemas.pagination import total_pages
from backend.app.schemas.transaction import (
    CreateSaleRequest, CreateExpenseRequest, TransactionResponse,
    TransactionListResponse, SummaryResponse
)
from backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/admin/transactions", tags=["Admin - Ledger"])


@router.post("/sales", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_sale(
    sale_data: CreateSaleRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Record a manual sale (Admin only). No inventory is touched."""
    transaction = await LedgerService.create_sale(db, sale_data, admin_id=current_user["user_id"])

    await log_event(
        db=db,
        action=AuditAction.SALE_RECORDED,
        actor_id=current_user["user_id"],
        entity_type="transaction",
        entity_id=transaction.id,
        metadata={"transaction_number": transaction.transaction_number, "amount": str(transaction.amount)}
    )

    return TransactionResponse.model_validate(transaction)


@router.post("/expenses", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: CreateExpenseRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Record an expense (Admin only)."""
    transaction = await LedgerService.create_expense(db, expense_data, admin_id=current_user["user_id"])

    await log_event(
        db=db,
        action=AuditAction.EXPENSE_RECORDED,
        actor_id=current_user["user_id"],
        entity_type="transaction",
        entity_id=transaction.id,
        metadata={
            "transaction_number": transaction.transaction_number,
            "amount": str(transaction.amount),
            "category": expense_data.category.value
        }
    )

    return TransactionResponse.model_validate(transaction)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    country: Optional[Country] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    sort_by: str = Query(DEFAULT_SORT),
    sort_order: str = Query("desc", description="asc or desc"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List ledger entries with filters and sorting (Admin only)."""
    transactions, total = await LedgerService.list_transactions(
        db,
        page=page,
        limit=limit,
        transaction_type=transaction_type,
        country=country,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    country: Optional[Country] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Total sales, total expenses and net profit over the filtered set (Admin only)."""
    return await LedgerService.get_summary(db, country=country, start_date=start_date, end_date=end_date)


@router.get("/number/{transaction_number}", response_model=TransactionResponse)
async def get_transaction_by_number(
    transaction_number: str = Path(..., description="Transaction number"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    transaction = await LedgerService.get_by_transaction_number(db, transaction_number)
    return TransactionResponse.model_validate(transaction)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int = Path(..., description="Transaction ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    transaction = await LedgerService.get_transaction(db, transaction_id)
    return TransactionResponse.model_validate(transaction)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int = Path(..., description="Transaction ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Remove a ledger entry (Admin only). Entries are never edited in place."""
    transaction = await LedgerService.delete_transaction(db, transaction_id)

    await log_event(
        db=db,
        action=AuditAction.TRANSACTION_DELETED,
        actor_id=current_user["user_id"],
        entity_type="transaction",
        entity_id=transaction_id,
        metadata={"transaction_number": transaction.transaction_number, "amount": str(transaction.amount)}
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
