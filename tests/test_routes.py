"""Route layer tests: authentication, authorization and response shapes."""

import random
import string

import pytest
import pytest_asyncio

from pizza_service.core.policy import Role
from pizza_service.repository import PizzaRepository
from pizza_service.schemas import (
    FranchiseCreate,
    MenuItemCreate,
    RoleAssignment,
    StoreCreate,
)
from pizza_service.services.fulfillment import FulfillmentResult
from tests.conftest import bearer


def random_name() -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=10))


async def register_user(client):
    test_user = {
        "name": "pizza diner",
        "email": f"{random_name()}@test.com",
        "password": "a",
    }
    response = await client.post("/api/auth", json=test_user)
    assert response.status_code == 200
    return response.json()["user"], response.json()["token"]


@pytest.fixture
def seed(session_maker):
    """Run ``fn(repo)`` in a dedicated session and return its result."""

    async def _seed(fn):
        async with session_maker() as session:
            return await fn(PizzaRepository(session))

    return _seed


@pytest_asyncio.fixture
async def shop(seed):
    """A franchise with one store and one menu item."""

    async def build(repo):
        franchise = await repo.create_franchise(FranchiseCreate(name="pizzaPocket"))
        store = await repo.create_store(franchise.id, StoreCreate(name="SLC"))
        veggie = await repo.add_menu_item(MenuItemCreate(title="Veggie", price=0.05))
        return franchise, store, veggie

    return await seed(build)


# =============================================================================
# AUTH
# =============================================================================

async def test_register_login_logout(client):
    user, token = await register_user(client)
    assert user["roles"] == [{"role": "diner", "objectId": None}]
    assert "password" not in user

    response = await client.put("/api/auth", json={"email": user["email"], "password": "a"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]

    response = await client.delete("/api/auth", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {"message": "logout successful"}

    response = await client.get("/api/user/me", headers=bearer(token))
    assert response.status_code == 401


async def test_register_requires_all_fields(client):
    response = await client.post("/api/auth", json={"name": "pizza diner", "email": "x@test.com"})
    assert response.status_code == 400
    assert response.json()["message"] == "name, email, and password are required"


async def test_register_duplicate_email(client, diner):
    response = await client.post(
        "/api/auth", json={"name": "again", "email": "d@test.com", "password": "a"}
    )
    assert response.status_code == 409
    assert response.json() == {"message": "email already registered"}

    response = await client.put("/api/auth", json={"email": "d@test.com", "password": "secret"})
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Diner"


async def test_login_wrong_password(client, diner):
    response = await client.put("/api/auth", json={"email": "d@test.com", "password": "nope"})
    assert response.status_code == 401


async def test_logout_requires_token(client):
    response = await client.delete("/api/auth")
    assert response.status_code == 401


async def test_unauthorized_if_token_invalid(client):
    response = await client.get("/api/user/me", headers=bearer("invalid"))
    assert response.status_code == 401
    assert response.json() == {"message": "unauthorized"}


async def test_registered_signature_with_forged_token(client, diner):
    _, token = diner
    header, _, signature = token.split(".")
    forged = f"{header}.eyJpZCI6MX0.{signature}"

    response = await client.get("/api/user/me", headers=bearer(forged))
    assert response.status_code == 401


# =============================================================================
# USERS
# =============================================================================

async def test_get_me(client, diner):
    user, token = diner
    response = await client.get("/api/user/me", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["email"] == "d@test.com"
    assert response.json()["id"] == user.id


async def test_update_user_as_admin(client, admin, diner):
    _, admin_token = admin
    user, _ = diner

    response = await client.put(
        f"/api/user/{user.id}", json={"name": "New Name"}, headers=bearer(admin_token)
    )
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "New Name"
    assert response.json()["token"]


async def test_update_self(client, diner):
    user, token = diner
    response = await client.put(
        f"/api/user/{user.id}",
        json={"email": "new@test.com", "password": "pw"},
        headers=bearer(token),
    )
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "new@test.com"

    response = await client.put("/api/auth", json={"email": "new@test.com", "password": "pw"})
    assert response.status_code == 200


async def test_update_email_taken(client, admin, diner):
    admin_user, _ = admin
    user, token = diner

    response = await client.put(
        f"/api/user/{user.id}", json={"email": admin_user.email}, headers=bearer(token)
    )
    assert response.status_code == 409
    assert response.json() == {"message": "email already registered"}

    response = await client.put("/api/auth", json={"email": "d@test.com", "password": "secret"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id


async def test_update_other_user_forbidden(client, diner):
    _, token = diner
    response = await client.put("/api/user/99", json={"name": "Hack"}, headers=bearer(token))
    assert response.status_code == 403


async def test_list_users_unauthorized(client):
    response = await client.get("/api/user")
    assert response.status_code == 401


async def test_list_users(client):
    user, token = await register_user(client)
    response = await client.get("/api/user", headers=bearer(token))
    assert response.status_code == 200
    assert [u["id"] for u in response.json()["users"]] == [user["id"]]


async def test_list_users_as_admin(client, admin, diner):
    _, token = admin
    response = await client.get("/api/user", params={"limit": 1}, headers=bearer(token))
    assert response.status_code == 200
    assert len(response.json()["users"]) == 1
    assert response.json()["more"] is True


# =============================================================================
# ORDERS
# =============================================================================

async def test_get_menu(client, shop):
    response = await client.get("/api/order/menu")
    assert response.status_code == 200
    assert [m["title"] for m in response.json()] == ["Veggie"]


async def test_add_menu_item_as_admin(client, admin):
    _, token = admin
    item = {"title": "Student", "description": "No topping, no sauce", "image": "pizza9.png", "price": 0.0001}

    response = await client.put("/api/order/menu", json=item, headers=bearer(token))
    assert response.status_code == 200

    response = await client.get("/api/order/menu")
    assert [m["title"] for m in response.json()] == ["Student"]


async def test_add_menu_item_as_diner_forbidden(client, diner):
    _, token = diner
    response = await client.put("/api/order/menu", json={"title": "New"}, headers=bearer(token))
    assert response.status_code == 403
    assert response.json()["message"] == "unable to add menu item"


async def test_create_order_calls_factory(client, diner, shop, fulfillment):
    user, token = diner
    franchise, store, veggie = shop
    body = {
        "franchiseId": franchise.id,
        "storeId": store.id,
        "items": [{"menuId": veggie.id, "description": "Veggie", "price": 0.05}],
    }

    response = await client.post("/api/order", json=body, headers=bearer(token))

    assert response.status_code == 200
    data = response.json()
    assert data["order"]["id"]
    assert data["order"]["items"][0]["menuId"] == veggie.id
    assert data["followLinkToEndChaos"] == "http://factory/report"
    assert data["jwt"] == "123"

    assert len(fulfillment.calls) == 1
    assert fulfillment.calls[0]["diner"] == {"id": user.id, "name": "Diner", "email": "d@test.com"}
    assert fulfillment.calls[0]["order"]["id"] == data["order"]["id"]

    response = await client.get("/api/order", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["dinerId"] == user.id
    assert [o["id"] for o in response.json()["orders"]] == [data["order"]["id"]]


async def test_create_order_factory_failure(client, diner, shop, fulfillment):
    _, token = diner
    franchise, store, _ = shop
    fulfillment.result = FulfillmentResult(success=False, report_url="err", status_code=500)

    response = await client.post(
        "/api/order",
        json={"franchiseId": franchise.id, "storeId": store.id, "items": []},
        headers=bearer(token),
    )

    assert response.status_code == 500
    assert "Failed to fulfill" in response.json()["message"]
    assert response.json()["followLinkToEndChaos"] == "err"


async def test_create_order_unknown_menu_item(client, diner, shop, fulfillment):
    _, token = diner
    franchise, store, _ = shop

    response = await client.post(
        "/api/order",
        json={
            "franchiseId": franchise.id,
            "storeId": store.id,
            "items": [{"menuId": 999, "description": "Ghost", "price": 1}],
        },
        headers=bearer(token),
    )

    assert response.status_code == 404
    assert fulfillment.calls == []


async def test_create_order_requires_login(client, shop):
    response = await client.post("/api/order", json={"franchiseId": 1, "storeId": 1, "items": []})
    assert response.status_code == 401


# =============================================================================
# FRANCHISES
# =============================================================================

async def test_list_franchises(client, shop):
    response = await client.get("/api/franchise")
    assert response.status_code == 200
    data = response.json()
    assert len(data["franchises"]) == 1
    assert data["more"] is False
    assert "admins" not in data["franchises"][0]
    assert data["franchises"][0]["stores"][0]["name"] == "SLC"


async def test_list_franchises_as_admin_includes_revenue(client, admin, shop):
    _, token = admin
    response = await client.get("/api/franchise", headers=bearer(token))
    franchise = response.json()["franchises"][0]
    assert franchise["admins"] == []
    assert franchise["stores"][0]["totalRevenue"] == 0


async def test_list_user_franchises(client, seed, create_user):
    user, token = await create_user("Franchisee", "f@test.com")
    await seed(lambda repo: repo.create_franchise(
        FranchiseCreate(name="pizzaPocket", admins=[{"email": "f@test.com"}])
    ))

    response = await client.get(f"/api/franchise/{user.id}", headers=bearer(token))
    assert response.status_code == 200
    assert [f["name"] for f in response.json()] == ["pizzaPocket"]


async def test_list_other_user_franchises_is_empty(client, diner, admin):
    _, token = diner
    admin_user, _ = admin
    response = await client.get(f"/api/franchise/{admin_user.id}", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == []


async def test_create_franchise_as_admin(client, admin, diner):
    _, token = admin
    response = await client.post(
        "/api/franchise",
        json={"name": "F", "admins": [{"email": "d@test.com"}]},
        headers=bearer(token),
    )
    assert response.status_code == 200
    assert response.json()["admins"][0]["email"] == "d@test.com"


async def test_create_franchise_unknown_admin(client, admin):
    _, token = admin
    response = await client.post(
        "/api/franchise",
        json={"name": "F", "admins": [{"email": "who@test.com"}]},
        headers=bearer(token),
    )
    assert response.status_code == 404
    assert "unknown user" in response.json()["message"]


async def test_create_franchise_as_diner_forbidden(client, diner):
    _, token = diner
    response = await client.post("/api/franchise", json={"name": "F"}, headers=bearer(token))
    assert response.status_code == 403


async def test_create_store_as_franchisee(client, seed, create_user):
    franchise = await seed(lambda repo: repo.create_franchise(FranchiseCreate(name="pizzaPocket")))
    _, token = await create_user(
        "Franchisee", "f@test.com",
        roles=[RoleAssignment(role=Role.FRANCHISEE, object="pizzaPocket")],
    )

    response = await client.post(
        f"/api/franchise/{franchise.id}/store", json={"name": "S"}, headers=bearer(token)
    )
    assert response.status_code == 200
    assert response.json()["franchiseId"] == franchise.id


async def test_create_store_other_franchise_forbidden(client, seed, create_user):
    async def build(repo):
        await repo.create_franchise(FranchiseCreate(name="mine"))
        return await repo.create_franchise(FranchiseCreate(name="theirs"))

    theirs = await seed(build)
    _, token = await create_user(
        "Franchisee", "f@test.com",
        roles=[RoleAssignment(role=Role.FRANCHISEE, object="mine")],
    )

    response = await client.post(
        f"/api/franchise/{theirs.id}/store", json={"name": "S"}, headers=bearer(token)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "unable to create a store"


async def test_create_store_after_becoming_franchise_admin(client, admin):
    _, admin_token = admin
    user, token = await register_user(client)

    response = await client.post(
        "/api/franchise",
        json={"name": "lateFranchise", "admins": [{"email": user["email"]}]},
        headers=bearer(admin_token),
    )
    assert response.status_code == 200
    franchise_id = response.json()["id"]

    response = await client.post(
        f"/api/franchise/{franchise_id}/store", json={"name": "S"}, headers=bearer(token)
    )
    assert response.status_code == 200
    store_id = response.json()["id"]

    response = await client.delete(
        f"/api/franchise/{franchise_id}/store/{store_id}", headers=bearer(token)
    )
    assert response.status_code == 200


async def test_create_store_missing_franchise(client, admin):
    _, token = admin
    response = await client.post("/api/franchise/42/store", json={"name": "S"}, headers=bearer(token))
    assert response.status_code == 403


async def test_delete_store(client, admin, shop):
    _, token = admin
    franchise, store, _ = shop

    response = await client.delete(
        f"/api/franchise/{franchise.id}/store/{store.id}", headers=bearer(token)
    )
    assert response.status_code == 200

    response = await client.get("/api/franchise")
    assert response.json()["franchises"][0]["stores"] == []


async def test_delete_franchise(client, admin, shop):
    _, token = admin
    franchise, _, _ = shop

    response = await client.delete(f"/api/franchise/{franchise.id}", headers=bearer(token))
    assert response.status_code == 200

    response = await client.get("/api/franchise")
    assert response.json()["franchises"] == []


async def test_delete_franchise_as_diner_forbidden(client, diner, shop):
    _, token = diner
    franchise, _, _ = shop
    response = await client.delete(f"/api/franchise/{franchise.id}", headers=bearer(token))
    assert response.status_code == 403


# =============================================================================
# MISC
# =============================================================================

async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "healthy"
    assert response.json()["status"] == "operational"
    assert response.json()["fulfillment_service"] == "stub"
    assert response.json()["fulfillment_status"] == "healthy"


async def test_health_degraded_when_factory_unreachable(client, fulfillment):
    fulfillment.healthy = False

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "healthy"
    assert response.json()["fulfillment_status"] == "unhealthy"


async def test_malformed_body_rejected(client, admin):
    _, token = admin
    response = await client.put("/api/order/menu", json={"price": 1}, headers=bearer(token))
    assert response.status_code == 400
    assert response.json()["message"] == "invalid request"
