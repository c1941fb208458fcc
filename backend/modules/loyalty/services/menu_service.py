# backend/modules/loyalty/services/menu_service.py

from typing import Dict, List, Iterable
import logging

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from core.database_retry import WriteTransaction, with_read_retry
from core.error_handling import NotFoundError

from ..models.loyalty_models import MenuItem
from ..schemas.loyalty_schemas import MenuItemCreate

logger = logging.getLogger(__name__)


class MenuItemService:
    """Menu items and their per-item loyalty rules"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_menu_item(self, restaurant_id: int, data: MenuItemCreate) -> MenuItem:
        payload = data.model_dump(mode="json")
        menu_item = MenuItem(restaurant_id=restaurant_id, **payload)

        async with WriteTransaction(self.db, "create_menu_item"):
            self.db.add(menu_item)
        await self.db.refresh(menu_item)

        logger.info(
            f"Created menu item {menu_item.id} '{menu_item.name}' "
            f"(loyalty mode {menu_item.loyalty_mode}) for restaurant {restaurant_id}"
        )
        return menu_item

    @with_read_retry()
    async def get_menu_item(self, restaurant_id: int, menu_item_id: int) -> MenuItem:
        result = await self.db.execute(
            select(MenuItem).where(
                and_(MenuItem.id == menu_item_id, MenuItem.restaurant_id == restaurant_id)
            )
        )
        menu_item = result.scalar_one_or_none()
        if menu_item is None:
            raise NotFoundError("MenuItem", menu_item_id)
        return menu_item

    @with_read_retry()
    async def list_menu_items(
        self, restaurant_id: int, active_only: bool = False
    ) -> List[MenuItem]:
        query = select(MenuItem).where(MenuItem.restaurant_id == restaurant_id)
        if active_only:
            query = query.where(MenuItem.is_active == True)
        result = await self.db.execute(query.order_by(MenuItem.category, MenuItem.name))
        return list(result.scalars().all())

    @with_read_retry()
    async def get_menu_items_by_ids(
        self, restaurant_id: int, menu_item_ids: Iterable[int]
    ) -> Dict[int, MenuItem]:
        """Fetch several items at once; raises NotFound for the first missing id"""
        wanted = set(menu_item_ids)
        if not wanted:
            return {}

        result = await self.db.execute(
            select(MenuItem).where(
                and_(MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(wanted))
            )
        )
        items = {item.id: item for item in result.scalars().all()}

        missing = sorted(wanted - items.keys())
        if missing:
            raise NotFoundError("MenuItem", missing[0])
        return items
