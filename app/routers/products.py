# app/routers/products.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import get_principal, require_roles
from app.database import get_session
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.product import (
    InventoryRead,
    ProductCreate,
    ProductRead,
    ProductReviewCreate,
    ProductReviewRead,
    RestockRequest,
)
from app.schemas.user import Principal
from app.services.inventory_service import InventoryLedger
from app.services.product_service import ProductService
from app.services.stats_service import StatsAggregator

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
stats_repo = StatsRepository()
service = ProductService(
    repo,
    stats_repo,
    InventoryLedger(repo),
    StatsAggregator(stats_repo, OrderRepository(), BookingRepository(), repo, UserRepository()),
)


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    only_active: bool = True,
    vendor_id: uuid.UUID | None = None,
):
    """
    List products.

    - Public endpoint.
    - `only_active=True` hides inactive products by default.
    """
    return service.list_products(
        session, skip=skip, limit=limit, only_active=only_active, vendor_id=vendor_id
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single product by id.

    - Public endpoint.
    """
    return service.get_product(session, product_id)


@router.get("/{product_id}/inventory", response_model=InventoryRead)
def get_inventory(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_inventory(session, product_id)


# -------- Vendor endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles("vendor"))],
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    List a new product (vendor only).
    """
    return service.create_product(session, actor, payload)


@router.post(
    "/{product_id}/restock",
    response_model=InventoryRead,
    dependencies=[Depends(require_roles("vendor"))],
)
def restock_product(
    product_id: uuid.UUID,
    payload: RestockRequest,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Add stock to one of the vendor's products.
    """
    return service.restock(session, actor, product_id, payload.quantity)


# -------- Customer endpoints --------


@router.post(
    "/{product_id}/reviews",
    response_model=ProductReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def review_product(
    product_id: uuid.UUID,
    payload: ProductReviewCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Add or update the caller's review of a product.
    """
    return service.add_or_update_review(session, actor, product_id, payload)
