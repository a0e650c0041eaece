"""
Order Repository

Normalizes untrusted order payloads, persists an order and its items in a
single transaction, reads orders back with their items, and announces every
successful change on the event hub.

Normalization rules:
    customer name   trimmed, max 80 chars, "Customer" when blank
    table number    trimmed, max 60 chars
    note            trimmed, max 300 chars
    item name       trimmed, max 120 chars, items without one are dropped
    item price      max(0, round(price)), non-numeric -> 0, above 10^9 rejected
    item qty        round(qty) clamped to 1..99, non-numeric or 0 -> 1
    item image      trimmed, max 2048 chars
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from orderdesk.core.exceptions import InternalError, NotFoundError, ValidationError
from orderdesk.models import DEFAULT_CUSTOMER_NAME, Order, OrderItem, OrderStatus, utcnow
from orderdesk.schemas import OrderView
from orderdesk.services.events import EventHub

logger = logging.getLogger(__name__)

CUSTOMER_NAME_MAX = 80
TABLE_NO_MAX = 60
NOTE_MAX = 300
ITEM_NAME_MAX = 120
ITEM_IMAGE_MAX = 2048
STATUS_MAX = 40
MIN_QTY = 1
MAX_QTY = 99
PRICE_MAX = 1_000_000_000
# Largest value a 64-bit INTEGER column holds
ORDER_ID_MAX = 2**63 - 1

ORDER_CREATED = "order_created"
ORDER_UPDATED = "order_updated"


# =============================================================================
# NORMALIZATION
# =============================================================================

@dataclass(frozen=True)
class ItemDraft:
    name: str
    price: int
    qty: int
    image: str = ""

    @property
    def line_total(self) -> int:
        return self.price * self.qty


@dataclass(frozen=True)
class OrderDraft:
    """A normalized order, ready to insert."""
    customer_name: str
    table_no: str
    note: str
    items: tuple[ItemDraft, ...]

    @property
    def total(self) -> int:
        return sum(item.line_total for item in self.items)


def sanitize_text(value: Any, max_len: Optional[int] = None) -> str:
    """Coerce to a trimmed string, cut to ``max_len`` characters."""
    clean = "" if value is None else str(value).strip()
    return clean[:max_len] if max_len else clean


def _to_number(value: Any) -> Optional[float]:
    """Coerce to float. Out-of-range integers become +/-inf, junk becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def round_half_up(number: float) -> int:
    """Round .5 upwards, like JavaScript's Math.round."""
    return int(math.floor(number + 0.5))


def normalize_item(raw: Any) -> Optional[ItemDraft]:
    """
    Normalize one raw item. Returns None when it has no usable name.

    Raises:
        ValidationError: price above PRICE_MAX
    """
    if not isinstance(raw, dict):
        return None

    name = sanitize_text(raw.get("name"), ITEM_NAME_MAX)
    if not name:
        return None

    price = _to_number(raw.get("price"))
    if price is not None and price > PRICE_MAX:
        raise ValidationError(f"Price of '{name}' is too large")

    qty = _to_number(raw.get("qty"))

    return ItemDraft(
        name=name,
        price=round_half_up(max(0.0, price)) if price is not None else 0,
        qty=round_half_up(min(MAX_QTY, max(MIN_QTY, qty))) if qty else MIN_QTY,
        image=sanitize_text(raw.get("image"), ITEM_IMAGE_MAX),
    )


def normalize_items(raw_items: Any) -> list[ItemDraft]:
    """Normalize a raw item list, dropping unusable entries, keeping order."""
    if not isinstance(raw_items, list):
        return []
    return [item for item in map(normalize_item, raw_items) if item is not None]


def normalize_order(customer_name: Any, table_no: Any, note: Any, raw_items: Any) -> OrderDraft:
    """
    Build an OrderDraft from untrusted input.

    Raises:
        ValidationError: no item survived normalization
    """
    items = normalize_items(raw_items)
    if not items:
        raise ValidationError("Order has no items")

    return OrderDraft(
        customer_name=sanitize_text(customer_name, CUSTOMER_NAME_MAX) or DEFAULT_CUSTOMER_NAME,
        table_no=sanitize_text(table_no, TABLE_NO_MAX),
        note=sanitize_text(note, NOTE_MAX),
        items=tuple(items),
    )


def parse_order_id(value: Any) -> int:
    """
    Accept a positive integer (or its string form).

    Raises:
        ValidationError: anything else
        NotFoundError: too large to be a stored id
    """
    if isinstance(value, bool):
        raise ValidationError("Invalid order id")

    if isinstance(value, str):
        value = sanitize_text(value)
        if value.isascii() and value.isdigit():
            value = int(value)

    if isinstance(value, int):
        number = value
    else:
        number = _to_number(value)
        if number is None or not math.isfinite(number) or not number.is_integer():
            raise ValidationError("Invalid order id")
        number = int(number)

    if number <= 0:
        raise ValidationError("Invalid order id")
    if number > ORDER_ID_MAX:
        raise NotFoundError(f"Order #{number} not found")
    return number


def parse_status(value: Any) -> OrderStatus:
    """
    Match a status case-insensitively.

    Raises:
        ValidationError: not one of the known statuses
    """
    try:
        return OrderStatus(sanitize_text(value, STATUS_MAX).lower())
    except ValueError:
        raise ValidationError("Invalid status")


# =============================================================================
# REPOSITORY
# =============================================================================

class OrderRepository:
    """Transactional order storage that publishes changes to the event hub."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], hub: EventHub):
        self.session_factory = session_factory
        self.hub = hub

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def _order_query():
        return select(Order).options(selectinload(Order.items))

    async def get_order(self, order_id: int) -> Optional[OrderView]:
        """Fetch one order with its items, or None."""
        try:
            async with self.session_factory() as session:
                order = await session.scalar(self._order_query().where(Order.id == order_id))
                return OrderView.model_validate(order) if order else None
        except Exception as e:
            logger.exception(f"Failed to load order #{order_id}: {e}")
            raise InternalError("Could not load order")

    async def list_orders(self) -> list[OrderView]:
        """All orders, newest first, each with its items in insertion order."""
        try:
            async with self.session_factory() as session:
                result = await session.scalars(self._order_query().order_by(Order.id.desc()))
                return [OrderView.model_validate(order) for order in result.all()]
        except Exception as e:
            logger.exception(f"Failed to list orders: {e}")
            raise InternalError("Could not load orders")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _insert_item(self, session: AsyncSession, order_id: int, item: ItemDraft) -> None:
        session.add(OrderItem(
            order_id=order_id,
            name=item.name,
            price=item.price,
            qty=item.qty,
            image=item.image,
        ))
        await session.flush()

    async def _rollback(self, session: AsyncSession) -> None:
        try:
            await session.rollback()
        except Exception as e:
            logger.warning(f"Rollback failed: {e}")

    async def save_draft(self, draft: OrderDraft) -> int:
        """
        Insert an order and its items atomically.

        The order row is flushed first to obtain its id, then items go in
        one by one in draft order, then the transaction commits.

        Returns:
            The new order id

        Raises:
            InternalError: any storage failure (nothing is persisted)
        """
        async with self.session_factory() as session:
            try:
                now = utcnow()
                order = Order(
                    customer_name=draft.customer_name,
                    table_no=draft.table_no,
                    note=draft.note,
                    status=OrderStatus.PENDING,
                    total=draft.total,
                    created_at=now,
                    updated_at=now,
                )
                session.add(order)
                await session.flush()

                for item in draft.items:
                    await self._insert_item(session, order.id, item)

                await session.commit()
                return order.id

            except Exception as e:
                await self._rollback(session)
                logger.exception(f"Failed to create order: {e}")
                raise InternalError("Could not save order")

    async def create_order(
        self,
        customer_name: Any,
        table_no: Any,
        note: Any,
        raw_items: Any,
    ) -> OrderView:
        """
        Normalize, persist and announce a customer order.

        Raises:
            ValidationError: no valid items
            InternalError: storage failure
        """
        draft = normalize_order(customer_name, table_no, note, raw_items)
        order_id = await self.save_draft(draft)

        order = await self._reload(order_id)
        logger.info(f"Order #{order.id} created: {len(order.items)} item(s), total {order.total}")

        await self.hub.publish_order(ORDER_CREATED, order.to_payload())
        return order

    async def update_status(self, order_id: Any, next_status: Any) -> OrderView:
        """
        Set an order's status.

        Any known status may follow any other.

        Raises:
            ValidationError: bad id or unknown status
            NotFoundError: no such order
            InternalError: storage failure
        """
        order_id = parse_order_id(order_id)
        status = parse_status(next_status)

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(status=status, updated_at=utcnow())
                )
                changed = result.rowcount
                await session.commit()
            except Exception as e:
                await self._rollback(session)
                logger.exception(f"Failed to update order #{order_id}: {e}")
                raise InternalError("Could not update order status")

        if not changed:
            raise NotFoundError(f"Order #{order_id} not found")

        order = await self._reload(order_id)
        logger.info(f"Order #{order_id} status -> {status.value}")

        await self.hub.publish_order(ORDER_UPDATED, order.to_payload())
        return order

    async def _reload(self, order_id: int) -> OrderView:
        order = await self.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order #{order_id} not found")
        return order
