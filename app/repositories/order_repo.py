# app/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.order import Order, OrderItem, OrderTimelineEntry


class OrderRepository:
    """
    Data access layer for orders, order_items and the order timeline.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for the unit of work.
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.customer_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_vendor(
        self,
        session: Session,
        vendor_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """Orders containing at least one item sold by the vendor."""
        vendor_orders = select(OrderItem.order_id).where(OrderItem.vendor_id == vendor_id)
        stmt = (
            select(Order)
            .where(Order.id.in_(vendor_orders))
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def claim_version(self, session: Session, order: Order) -> bool:
        """
        Bump the version only if nobody else did since `order` was read.

        Returns False on a lost race; the caller aborts the transition.
        """
        stmt = (
            update(Order)
            .where(Order.id == order.id, Order.version == order.version)
            .values(version=Order.version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        if result.rowcount == 0:
            return False
        session.expire(order, ["version", "updated_at"])
        return True

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    # ---- Timeline ----

    def list_timeline(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderTimelineEntry]:
        stmt = (
            select(OrderTimelineEntry)
            .where(OrderTimelineEntry.order_id == order_id)
            .order_by(OrderTimelineEntry.position)
        )
        return session.exec(stmt).all()

    def append_timeline(
        self,
        session: Session,
        entry: OrderTimelineEntry,
    ) -> OrderTimelineEntry:
        """Append-only: position is assigned as (current length + 1)."""
        stmt = select(func.count(OrderTimelineEntry.id)).where(
            OrderTimelineEntry.order_id == entry.order_id
        )
        entry.position = int(session.exec(stmt).one() or 0) + 1
        session.add(entry)
        session.flush()
        return entry
