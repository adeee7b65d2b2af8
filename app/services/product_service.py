# app/services/product_service.py
import logging
import re
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.database import unit_of_work
from app.models.product import Product, ProductReview
from app.repositories.product_repo import ProductRepository
from app.repositories.stats_repo import StatsRepository
from app.schemas.product import (
    InventoryRead,
    ProductCreate,
    ProductReviewCreate,
    ProductReviewRead,
)
from app.schemas.user import Principal
from app.services.inventory_service import InventoryLedger
from app.services.stats_service import StatsAggregator

logger = logging.getLogger(__name__)


class ProductService:
    """
    Business logic for the vendor catalog.

    Responsibilities:
      - SKU generation & uniqueness
      - vendor ownership checks
      - restock through the InventoryLedger
      - customer reviews + rating recompute
    """

    def __init__(
        self,
        repo: ProductRepository,
        stats_repo: StatsRepository,
        ledger: InventoryLedger,
        stats: StatsAggregator,
    ):
        self.repo = repo
        self.stats_repo = stats_repo
        self.ledger = ledger
        self.stats = stats

    # ----- Helpers -----

    @staticmethod
    def _sku_base(raw: str) -> str:
        """
        Basic SKU from a name:
          - uppercase
          - non-alphanumeric -> '-'
          - collapse multiple '-'
        """
        value = raw.strip().upper()
        value = re.sub(r"[^A-Z0-9]+", "-", value)
        value = re.sub(r"-+", "-", value).strip("-")
        return (value or "ITEM")[:48]

    def _ensure_unique_sku(self, session: Session, base: str) -> str:
        """
        Ensure SKU is unique by appending -2, -3, ... if needed.
        """
        sku = base
        i = 2
        while self.repo.get_by_sku(session, sku) is not None:
            sku = f"{base}-{i}"
            i += 1
        return sku

    def _get_owned_product(
        self,
        session: Session,
        actor: Principal,
        product_id: uuid.UUID,
    ) -> Product:
        product = self.get_product(session, product_id)
        if not actor.is_admin and product.vendor_id != actor.id:
            raise ForbiddenError("You can only manage your own products")
        return product

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
        vendor_id: uuid.UUID | None = None,
    ) -> list[Product]:
        return self.repo.list_products(
            session, skip=skip, limit=limit, only_active=only_active, vendor_id=vendor_id
        )

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def create_product(
        self,
        session: Session,
        actor: Principal,
        payload: ProductCreate,
    ) -> Product:
        """
        List a new product for the calling vendor.

        - If sku is provided it must be unused.
        - Else a unique sku is derived from the name.
        - The vendor profile is created on first listing and its
          total_products counter bumped in the same transaction.
        """
        if actor.role != "vendor":
            raise ForbiddenError("Only vendors can list products")

        with unit_of_work(session):
            if payload.sku is not None:
                if self.repo.get_by_sku(session, payload.sku) is not None:
                    raise ValidationError(f"SKU already in use: {payload.sku}")
                sku = payload.sku
            else:
                sku = self._ensure_unique_sku(session, self._sku_base(payload.name))

            product = Product(
                vendor_id=actor.id,
                sku=sku,
                **payload.model_dump(exclude={"sku"}),
            )
            product = self.repo.create(session, product)
            self.stats_repo.add_vendor_products(session, actor.id, 1)
            product_id = product.id

        logger.info("Vendor %s listed product %s (%s)", actor.id, product_id, sku)
        return self.get_product(session, product_id)

    # ----- Inventory -----

    def restock(
        self,
        session: Session,
        actor: Principal,
        product_id: uuid.UUID,
        quantity: int,
    ) -> InventoryRead:
        with unit_of_work(session):
            self._get_owned_product(session, actor, product_id)
            self.ledger.restock(session, product_id, quantity)
        return self.get_inventory(session, product_id)

    def get_inventory(self, session: Session, product_id: uuid.UUID) -> InventoryRead:
        product = self.get_product(session, product_id)
        return InventoryRead(
            product_id=product.id,
            quantity=product.quantity,
            low_stock=self.ledger.is_low_stock(product),
        )

    # ----- Reviews -----

    def add_or_update_review(
        self,
        session: Session,
        actor: Principal,
        product_id: uuid.UUID,
        payload: ProductReviewCreate,
    ) -> ProductReviewRead:
        """
        One review per (product, customer): a second submission edits the
        first. Product and vendor ratings are recomputed afterwards.
        """
        if actor.role != "customer":
            raise ForbiddenError("Only customers can review products")

        with unit_of_work(session):
            self.get_product(session, product_id)
            review = self.repo.get_review(session, product_id, actor.id)
            if review is None:
                review = ProductReview(
                    product_id=product_id,
                    customer_id=actor.id,
                    rating=payload.rating,
                    comment=payload.comment,
                )
            else:
                review.rating = payload.rating
                review.comment = payload.comment
                review.updated_at = datetime.now(timezone.utc)
            self.repo.save_review(session, review)

        self.stats.dispatch(session, self.stats.on_product_review_changed, product_id)
        return ProductReviewRead.model_validate(self.repo.get_review(session, product_id, actor.id))
