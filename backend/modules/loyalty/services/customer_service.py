# backend/modules/loyalty/services/customer_service.py

from typing import List, Optional, Union
import logging

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.database_retry import WriteTransaction, with_read_retry
from core.error_handling import ConflictError, NotFoundError

from ..models.loyalty_models import Customer, PointTransaction, TransactionType
from ..schemas.loyalty_schemas import CustomerCreate

logger = logging.getLogger(__name__)


class CustomerService:
    """Customer lookup and ledger history"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @with_read_retry()
    async def get_customer(
        self, restaurant_id: int, id_or_email: Union[int, str]
    ) -> Customer:
        """
        Get a customer by id or email.

        A string containing ``@`` is treated as an email address and matched
        case-insensitively; anything else must be a numeric id.
        """
        query = select(Customer).where(Customer.restaurant_id == restaurant_id)

        if isinstance(id_or_email, str) and "@" in id_or_email:
            query = query.where(func.lower(Customer.email) == id_or_email.strip().lower())
        else:
            try:
                customer_id = int(id_or_email)
            except (TypeError, ValueError):
                raise NotFoundError("Customer", id_or_email)
            query = query.where(Customer.id == customer_id)

        result = await self.db.execute(query)
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFoundError("Customer", id_or_email)
        return customer

    async def create_customer(self, restaurant_id: int, data: CustomerCreate) -> Customer:
        existing = await self.db.execute(
            select(Customer.id).where(
                and_(Customer.restaurant_id == restaurant_id, Customer.email == data.email)
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                f"Customer with email {data.email} already exists",
                details={"email": data.email},
            )

        customer = Customer(restaurant_id=restaurant_id, **data.model_dump())
        async with WriteTransaction(self.db, "create_customer"):
            self.db.add(customer)
        await self.db.refresh(customer)

        logger.info(f"Created customer {customer.id} for restaurant {restaurant_id}")
        return customer

    @with_read_retry()
    async def list_customers(
        self, restaurant_id: int, skip: int = 0, limit: int = 50
    ) -> List[Customer]:
        result = await self.db.execute(
            select(Customer)
            .where(Customer.restaurant_id == restaurant_id)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    @with_read_retry()
    async def get_transactions(
        self,
        restaurant_id: int,
        customer_id: int,
        transaction_type: Optional[TransactionType] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[PointTransaction]:
        """Ledger history for a customer, newest first"""
        await self.get_customer(restaurant_id, customer_id)

        query = select(PointTransaction).where(
            and_(
                PointTransaction.restaurant_id == restaurant_id,
                PointTransaction.customer_id == customer_id,
            )
        )
        if transaction_type:
            query = query.where(PointTransaction.type == transaction_type.value)

        result = await self.db.execute(
            query.order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
