# app/services/inventory_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import InsufficientStockError, NotFoundError, ValidationError
from app.models.product import InventoryReservation, Product
from app.repositories.product_repo import ProductRepository

logger = logging.getLogger(__name__)


class InventoryLedger:
    """
    The only writer of Product.quantity.

    Responsibilities:
      - reserve: atomic conditional decrement (no oversell)
      - release: add stock back, at most once per reservation key
      - release_order: release every open reservation of an order
      - restock: vendor-driven increase

    Every method runs inside the caller's transaction and never commits.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

    def reserve(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
        key: str | None = None,
        order_id: uuid.UUID | None = None,
    ) -> int:
        """
        Take `quantity` units out of stock and return the new quantity.

        - track_quantity=False: always succeeds, counter untouched.
        - allow_backorder=True: decrements unconditionally.
        - otherwise: succeeds only while quantity >= requested.

        Raises:
            NotFoundError, ValidationError, InsufficientStockError
        """
        self._check_quantity(quantity)
        product = self._get_product(session, product_id)

        if product.track_quantity:
            ok = self.product_repo.decrement_stock(
                session,
                product_id,
                quantity,
                require_available=not product.allow_backorder,
            )
            if not ok:
                raise InsufficientStockError(product.name, quantity)

        if key is not None:
            self.product_repo.create_reservation(
                session,
                InventoryReservation(
                    reservation_key=key,
                    order_id=order_id,
                    product_id=product_id,
                    quantity=quantity,
                ),
            )

        new_quantity = self.product_repo.get_quantity(session, product_id)
        logger.debug("Reserved %s x %s (now %s)", quantity, product_id, new_quantity)
        return int(new_quantity or 0)

    def release(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
        key: str | None = None,
    ) -> int:
        """
        Put `quantity` units back and return the new quantity.

        With a key, the reservation must exist and match the product and
        quantity; only its first release restocks, replays are logged and
        ignored.
        """
        self._check_quantity(quantity)
        product = self._get_product(session, product_id)

        if key is not None:
            reservation = self.product_repo.get_reservation(session, key)
            if reservation is None:
                raise NotFoundError("Inventory reservation", key)
            if reservation.product_id != product_id or reservation.quantity != quantity:
                raise ValidationError(
                    f"Reservation {key} holds {reservation.quantity} x {reservation.product_id}"
                )
            if not self.product_repo.mark_released(session, key):
                logger.info("Reservation %s already released, skipping restock", key)
                return int(self.product_repo.get_quantity(session, product_id) or 0)

        if product.track_quantity:
            self.product_repo.increment_stock(session, product_id, quantity)

        return int(self.product_repo.get_quantity(session, product_id) or 0)

    def release_order(self, session: Session, order_id: uuid.UUID) -> int:
        """Release every open reservation of an order. Returns how many were released."""
        released = 0
        for reservation in self.product_repo.list_reservations(session, order_id):
            self.release(
                session,
                reservation.product_id,
                reservation.quantity,
                key=reservation.reservation_key,
            )
            released += 1
        if released:
            logger.info("Released %s reservation(s) of order %s", released, order_id)
        return released

    def restock(self, session: Session, product_id: uuid.UUID, quantity: int) -> int:
        """Vendor adds new units to stock."""
        self._check_quantity(quantity)
        product = self._get_product(session, product_id)
        if not product.track_quantity:
            raise ValidationError("Product does not track inventory")
        self.product_repo.increment_stock(session, product_id, quantity)
        return int(self.product_repo.get_quantity(session, product_id) or 0)

    @staticmethod
    def is_low_stock(product: Product) -> bool:
        return product.track_quantity and product.quantity <= product.low_stock_threshold
