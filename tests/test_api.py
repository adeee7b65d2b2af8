"""HTTP-level tests: auth, routing and error mapping."""

import uuid

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.core.config import get_settings
from app.database import get_session
from app.main import app

from .conftest import booking_payload, order_payload

settings = get_settings()


def token_for(user_id: uuid.UUID, email: str) -> dict[str, str]:
    token = jwt.encode(
        {"sub": str(user_id), "email": email},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )
    return {"Authorization": f"Bearer {token}"}


def auth(user) -> dict[str, str]:
    return token_for(user.id, user.email)


@pytest.fixture
def client(session):
    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_missing_token(self, client):
        assert client.get("/api/v1/users/me").status_code == 401

    def test_bad_token(self, client):
        response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_first_call_provisions_a_customer(self, client):
        user_id = uuid.uuid4()
        response = client.get("/api/v1/users/me", headers=token_for(user_id, "fern@example.com"))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(user_id)
        assert body["role"] == "customer"
        assert body["name"] == "fern"

    def test_suspended_account_is_rejected(self, client, session, customer):
        customer.status = "suspended"
        session.add(customer)
        session.commit()
        assert client.get("/api/v1/users/me", headers=auth(customer)).status_code == 403


class TestOrderEndpoints:
    def test_create_order(self, client, customer, product):
        payload = order_payload([(product, 2)])
        response = client.post(
            "/api/v1/orders", json=payload.model_dump(mode="json"), headers=auth(customer)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["total"] == 1000
        assert len(body["items"]) == 1

    def test_out_of_stock_is_409(self, client, customer, product):
        payload = order_payload([(product, 6)])
        response = client.post(
            "/api/v1/orders", json=payload.model_dump(mode="json"), headers=auth(customer)
        )

        assert response.status_code == 409
        assert response.json()["kind"] == "insufficient_stock"

    def test_pricing_mismatch_is_400(self, client, customer, product):
        data = order_payload([(product, 1)]).model_dump(mode="json")
        data["pricing"]["total"] = 1

        response = client.post("/api/v1/orders", json=data, headers=auth(customer))
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_customer_cannot_confirm(self, client, customer, product):
        created = client.post(
            "/api/v1/orders",
            json=order_payload([(product, 1)]).model_dump(mode="json"),
            headers=auth(customer),
        ).json()

        response = client.patch(
            f"/api/v1/orders/{created['id']}/status",
            json={"status": "confirmed"},
            headers=auth(customer),
        )
        assert response.status_code == 403
        assert response.json()["kind"] == "forbidden"

    def test_invalid_transition_is_409(self, client, customer, vendor, product):
        created = client.post(
            "/api/v1/orders",
            json=order_payload([(product, 1)]).model_dump(mode="json"),
            headers=auth(customer),
        ).json()

        response = client.patch(
            f"/api/v1/orders/{created['id']}/status",
            json={"status": "delivered"},
            headers=auth(vendor),
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "invalid_transition"

    def test_unknown_order_is_404(self, client, customer):
        response = client.get(f"/api/v1/orders/{uuid.uuid4()}", headers=auth(customer))
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_order_listing_is_admin_only(self, client, customer, admin):
        assert client.get("/api/v1/orders", headers=auth(customer)).status_code == 403
        assert client.get("/api/v1/orders", headers=auth(admin)).status_code == 200


class TestBookingEndpoints:
    def test_double_booking_is_409(self, client, customer, other_customer, provider, service):
        data = booking_payload(provider, service).model_dump(mode="json")

        first = client.post("/api/v1/bookings", json=data, headers=auth(customer))
        assert first.status_code == 201
        assert first.json()["status"] == "pending"

        second = client.post("/api/v1/bookings", json=data, headers=auth(other_customer))
        assert second.status_code == 409
        assert second.json()["kind"] == "conflict"

    def test_short_cancel_reason_is_422(self, client, customer, provider, service):
        created = client.post(
            "/api/v1/bookings",
            json=booking_payload(provider, service).model_dump(mode="json"),
            headers=auth(customer),
        ).json()

        response = client.post(
            f"/api/v1/bookings/{created['id']}/cancel",
            json={"reason": "nah"},
            headers=auth(customer),
        )
        assert response.status_code == 422

    def test_provider_accepts_with_legacy_status(self, client, customer, provider, service):
        created = client.post(
            "/api/v1/bookings",
            json=booking_payload(provider, service).model_dump(mode="json"),
            headers=auth(customer),
        ).json()

        response = client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"status": "accepted"},
            headers=auth(provider),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_upcoming_filter(self, client, customer, provider, service):
        client.post(
            "/api/v1/bookings",
            json=booking_payload(provider, service).model_dump(mode="json"),
            headers=auth(customer),
        )

        upcoming = client.get("/api/v1/bookings?when=upcoming", headers=auth(customer))
        assert upcoming.status_code == 200
        assert upcoming.json()["total"] == 1
        assert client.get("/api/v1/bookings?when=past", headers=auth(customer)).json()["total"] == 0
        assert client.get("/api/v1/bookings?when=later", headers=auth(customer)).status_code == 422


class TestProductEndpoints:
    def test_vendor_lists_a_product(self, client, vendor):
        response = client.post(
            "/api/v1/products",
            json={"name": "Peace Lily", "price": 650, "quantity": 3},
            headers=auth(vendor),
        )
        assert response.status_code == 201
        assert response.json()["vendor_id"] == str(vendor.id)

    def test_customer_cannot_list_a_product(self, client, customer):
        response = client.post(
            "/api/v1/products",
            json={"name": "Peace Lily", "price": 650},
            headers=auth(customer),
        )
        assert response.status_code == 403

    def test_catalog_is_public(self, client, product):
        response = client.get("/api/v1/products")
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [str(product.id)]
