# backend/modules/loyalty/routes/loyalty_routes.py

"""
Routes for loyalty configuration, point previews, customers, the point
ledger and menu items.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from core.database import get_async_db
from core.error_handling import handle_api_errors

from ..models.loyalty_models import TransactionType
from ..services.customer_service import CustomerService
from ..services.loyalty_config import LoyaltyConfigService
from ..services.menu_service import MenuItemService
from ..services.point_ledger import PointLedgerService
from ..schemas.loyalty_schemas import (
    # Configuration
    LoyaltyConfiguration,
    LoyaltyConfigUpdate,
    # Calculation
    PointsPreviewRequest,
    PointsCalculation,
    # Customers
    CustomerCreate,
    CustomerResponse,
    # Ledger
    PointTransactionCreate,
    PointTransactionResponse,
    PurchaseAwardRequest,
    PurchaseAwardResponse,
    # Menu items
    MenuItemCreate,
    MenuItemResponse,
)

router = APIRouter(prefix="/api/v1/restaurants/{restaurant_id}", tags=["Loyalty"])


# ========== Configuration ==========


@router.get("/loyalty/config", response_model=LoyaltyConfiguration)
@handle_api_errors
async def get_loyalty_config(restaurant_id: int, db: AsyncSession = Depends(get_async_db)):
    """
    Get the restaurant's resolved loyalty configuration.

    Missing or invalid stored values are replaced by their defaults.

    Raises:
        404: Restaurant not found
    """
    return await LoyaltyConfigService(db).get_config(restaurant_id)


@router.put("/loyalty/config", response_model=LoyaltyConfiguration)
@handle_api_errors
async def update_loyalty_config(
    restaurant_id: int,
    update: LoyaltyConfigUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Update part of the loyalty configuration.

    Omitted fields keep their stored values; other restaurant settings are
    left untouched.

    Raises:
        404: Restaurant not found
        422: Value outside its allowed range
    """
    return await LoyaltyConfigService(db).update_config(restaurant_id, update)


@router.post("/loyalty/preview", response_model=PointsCalculation)
@handle_api_errors
async def preview_points(
    restaurant_id: int,
    request: PointsPreviewRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Calculate the points an order or menu item would earn. Nothing is recorded.
    """
    return await LoyaltyConfigService(db).preview(restaurant_id, request)


# ========== Customers ==========


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@handle_api_errors
async def create_customer(
    restaurant_id: int,
    data: CustomerCreate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Enrol a customer in the restaurant's loyalty program.

    Raises:
        409: Email already registered with this restaurant
    """
    return await CustomerService(db).create_customer(restaurant_id, data)


@router.get("/customers", response_model=List[CustomerResponse])
@handle_api_errors
async def list_customers(
    restaurant_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    return await CustomerService(db).list_customers(restaurant_id, skip=skip, limit=limit)


@router.get("/customers/{id_or_email}", response_model=CustomerResponse)
@handle_api_errors
async def get_customer(
    restaurant_id: int,
    id_or_email: str,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Look up a customer by numeric id or by email address.

    Raises:
        404: Customer not found
    """
    return await CustomerService(db).get_customer(restaurant_id, id_or_email)


# ========== Point Ledger ==========


@router.get(
    "/customers/{customer_id}/transactions",
    response_model=List[PointTransactionResponse],
)
@handle_api_errors
async def get_customer_transactions(
    restaurant_id: int,
    customer_id: int,
    transaction_type: Optional[TransactionType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Get a customer's point history, newest first.

    Raises:
        404: Customer not found
    """
    return await CustomerService(db).get_transactions(
        restaurant_id, customer_id, transaction_type=transaction_type, skip=skip, limit=limit
    )


@router.post(
    "/customers/{customer_id}/transactions",
    response_model=PointTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def create_point_transaction(
    restaurant_id: int,
    customer_id: int,
    data: PointTransactionCreate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Record a manual bonus, referral or signup award.

    Purchases go through the purchases endpoint and redemptions through
    the reward redeem endpoint.

    Raises:
        404: Customer not found
        422: Other transaction types, or points that are not positive
    """
    await CustomerService(db).get_customer(restaurant_id, customer_id)
    return await PointLedgerService(db).process_point_transaction(
        restaurant_id,
        customer_id,
        data.type,
        data.points,
        description=data.description,
        branch_id=data.branch_id,
    )


@router.post("/customers/{customer_id}/purchases", response_model=PurchaseAwardResponse)
@handle_api_errors
async def award_purchase_points(
    restaurant_id: int,
    customer_id: int,
    data: PurchaseAwardRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Award points for a purchase.

    Itemised purchases earn per menu item; otherwise the restaurant's blanket
    mode or the fallback rate applies.

    Raises:
        404: Customer or menu item not found
    """
    transaction = await PointLedgerService(db).award_purchase_points(
        restaurant_id,
        customer_id,
        data.amount_spent,
        lines=data.items,
        branch_id=data.branch_id,
        description=data.description,
    )
    if transaction is None:
        return PurchaseAwardResponse(points_awarded=0)

    return PurchaseAwardResponse(
        points_awarded=transaction.points,
        transaction=PointTransactionResponse.model_validate(transaction),
    )


# ========== Menu Items ==========


@router.post("/menu-items", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
@handle_api_errors
async def create_menu_item(
    restaurant_id: int,
    data: MenuItemCreate,
    db: AsyncSession = Depends(get_async_db),
):
    return await MenuItemService(db).create_menu_item(restaurant_id, data)


@router.get("/menu-items", response_model=List[MenuItemResponse])
@handle_api_errors
async def list_menu_items(
    restaurant_id: int,
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_async_db),
):
    return await MenuItemService(db).list_menu_items(restaurant_id, active_only=active_only)


@router.get("/menu-items/{menu_item_id}", response_model=MenuItemResponse)
@handle_api_errors
async def get_menu_item(
    restaurant_id: int,
    menu_item_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Raises:
        404: Menu item not found
    """
    return await MenuItemService(db).get_menu_item(restaurant_id, menu_item_id)
