# app/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.product import InventoryReservation, Product, ProductReview


class ProductRepository:
    """
    Data access layer for Product, its inventory counters and reviews.

    - Pure DB operations (CRUD + queries).
    - No commits; services own the transaction boundary.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_many(
        self,
        session: Session,
        product_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """Batch fetch; missing ids are simply absent from the result."""
        if not product_ids:
            return {}
        stmt = select(Product).where(Product.id.in_(product_ids))
        return {p.id: p for p in session.exec(stmt).all()}

    def get_by_sku(self, session: Session, sku: str) -> Product | None:
        stmt = select(Product).where(Product.sku == sku)
        return session.exec(stmt).first()

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
        vendor_id: uuid.UUID | None = None,
    ) -> list[Product]:
        stmt = select(Product)
        if only_active:
            stmt = stmt.where(Product.is_active == True)  # noqa: E712
        if vendor_id is not None:
            stmt = stmt.where(Product.vendor_id == vendor_id)
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.flush()
        session.refresh(product)
        return product

    # ----- Inventory counters -----

    def decrement_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
        require_available: bool,
    ) -> bool:
        """
        Single-statement decrement.

        With require_available the UPDATE only matches while
        quantity >= requested, so two callers racing for the last unit
        cannot both succeed. Returns False when no row matched.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if require_available:
            stmt = stmt.where(Product.quantity >= quantity)
        result = session.exec(stmt)  # type: ignore[call-overload]
        matched = result.rowcount > 0
        if matched:
            self._expire_quantity(session, product_id)
        return matched

    def increment_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        session.exec(stmt)  # type: ignore[call-overload]
        self._expire_quantity(session, product_id)

    def get_quantity(self, session: Session, product_id: uuid.UUID) -> int | None:
        stmt = select(Product.quantity).where(Product.id == product_id)
        return session.exec(stmt).first()

    def _expire_quantity(self, session: Session, product_id: uuid.UUID) -> None:
        # Core UPDATEs bypass the identity map; drop any cached counter.
        cached = session.identity_map.get(session.identity_key(Product, product_id))
        if cached is not None:
            session.expire(cached, ["quantity"])

    # ----- Reservations -----

    def get_reservation(
        self,
        session: Session,
        reservation_key: str,
    ) -> InventoryReservation | None:
        stmt = select(InventoryReservation).where(
            InventoryReservation.reservation_key == reservation_key
        )
        return session.exec(stmt).first()

    def list_reservations(
        self,
        session: Session,
        order_id: uuid.UUID,
        status: str | None = "reserved",
    ) -> list[InventoryReservation]:
        stmt = select(InventoryReservation).where(InventoryReservation.order_id == order_id)
        if status is not None:
            stmt = stmt.where(InventoryReservation.status == status)
        return session.exec(stmt.order_by(InventoryReservation.created_at)).all()

    def create_reservation(
        self,
        session: Session,
        reservation: InventoryReservation,
    ) -> InventoryReservation:
        session.add(reservation)
        session.flush()
        return reservation

    def mark_released(self, session: Session, reservation_key: str) -> bool:
        """
        Flip reserved -> released. Returns False if the reservation was
        already released (or never existed), so the caller skips the restock.
        """
        stmt = (
            update(InventoryReservation)
            .where(
                InventoryReservation.reservation_key == reservation_key,
                InventoryReservation.status == "reserved",
            )
            .values(status="released", released_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount > 0

    # ----- Reviews -----

    def get_review(
        self,
        session: Session,
        product_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> ProductReview | None:
        stmt = select(ProductReview).where(
            ProductReview.product_id == product_id,
            ProductReview.customer_id == customer_id,
        )
        return session.exec(stmt).first()

    def save_review(self, session: Session, review: ProductReview) -> ProductReview:
        session.add(review)
        session.flush()
        session.refresh(review)
        return review

    def product_rating(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> tuple[float, int]:
        """Average + count over approved reviews of one product."""
        stmt = select(
            func.coalesce(func.avg(ProductReview.rating), 0.0),
            func.count(ProductReview.id),
        ).where(
            ProductReview.product_id == product_id,
            ProductReview.status == "approved",
        )
        avg, count = session.exec(stmt).one()
        return float(avg or 0.0), int(count or 0)

    def vendor_rating(
        self,
        session: Session,
        vendor_id: uuid.UUID,
    ) -> tuple[float, int]:
        """Average + count over approved reviews of all the vendor's products."""
        stmt = (
            select(
                func.coalesce(func.avg(ProductReview.rating), 0.0),
                func.count(ProductReview.id),
            )
            .join(Product, Product.id == ProductReview.product_id)
            .where(
                Product.vendor_id == vendor_id,
                ProductReview.status == "approved",
            )
        )
        avg, count = session.exec(stmt).one()
        return float(avg or 0.0), int(count or 0)
