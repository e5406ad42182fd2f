"""
Integration tests for the HTTP adapter.

Requests go through the full FastAPI app (auth dependencies, routes,
error mapping) over an in-process ASGI transport against a registry in a
temporary directory.

Tests cover:
- Authentication and tenant scoping
- Category and transaction routes
- Error envelopes for 400, 404, 409 and 500
- Superadmin-only backups
"""

import httpx
import pytest
import pytest_asyncio

from backend.ledger_server.api import create_app
from backend.ledger_server.api.config import Settings

USER = {"X-Tenant-ID": "42"}
OTHER_USER = {"X-Tenant-ID": "43"}
ADMIN = {"X-Tenant-ID": "admin", "X-Role": "superadmin"}


@pytest_asyncio.fixture
async def client(registry):
    """HTTP client bound to an app sharing the test registry."""
    app = create_app(registry=registry, settings=Settings(max_page_size=100))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _post_transaction(client, headers=USER, **overrides):
    body = {
        "amount": 100,
        "date": "2024-03-15",
        "type": "expense",
        "categoryId": 9,
        "description": "Lunch",
    }
    body.update(overrides)
    return await client.post("/api/v1/transactions", json=body, headers=headers)


class TestAuth:
    """Tests for identity handling."""

    @pytest.mark.asyncio
    async def test_missing_identity(self, client):
        response = await client.get("/api/v1/categories")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Access token required",
            "code": "HTTP_ERROR",
        }

    @pytest.mark.asyncio
    async def test_unsafe_tenant_id(self, client):
        """A tenant id that is not file-name safe is refused, not rewritten."""
        await _post_transaction(client, headers={"X-Tenant-ID": "ab"})

        response = await client.get(
            "/api/v1/transactions", params={"year": 2024}, headers={"X-Tenant-ID": "a.b"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_tenant_override_ignored_for_users(self, client):
        """A regular user naming another tenant still sees their own data."""
        await _post_transaction(client, headers=OTHER_USER)

        response = await client.get(
            "/api/v1/transactions", params={"year": 2024, "tenantId": "43"}, headers=USER
        )

        assert response.json()["pagination"]["totalCount"] == 0

    @pytest.mark.asyncio
    async def test_superadmin_override(self, client):
        """A superadmin may read another tenant's shard."""
        await _post_transaction(client, headers=OTHER_USER)

        response = await client.get(
            "/api/v1/transactions", params={"year": 2024, "tenantId": "43"}, headers=ADMIN
        )

        assert response.json()["pagination"]["totalCount"] == 1


class TestCategoryRoutes:
    """Tests for /api/v1/categories."""

    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/api/v1/categories", params={"year": 2024}, headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]) == 14

    @pytest.mark.asyncio
    async def test_create_rename_delete(self, client):
        created = await client.post(
            "/api/v1/categories",
            params={"year": 2024},
            json={"name": "Gifts", "type": "income"},
            headers=USER,
        )
        assert created.status_code == 201
        category_id = created.json()["data"]["id"]
        assert created.json()["data"]["isDefault"] is False

        renamed = await client.put(
            f"/api/v1/categories/{category_id}",
            params={"year": 2024},
            json={"name": "Presents"},
            headers=USER,
        )
        assert renamed.json()["data"]["name"] == "Presents"

        deleted = await client.delete(
            f"/api/v1/categories/{category_id}", params={"year": 2024}, headers=USER
        )
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True, "message": "Category deleted successfully"}

    @pytest.mark.asyncio
    async def test_create_invalid_type(self, client):
        response = await client.post(
            "/api/v1/categories",
            params={"year": 2024},
            json={"name": "Gifts", "type": "transfer"},
            headers=USER,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Type must be income or expense"
        assert response.json()["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_delete_default_conflict(self, client):
        response = await client.delete("/api/v1/categories/1", params={"year": 2024}, headers=USER)

        assert response.status_code == 409
        assert response.json()["message"] == "Cannot delete default categories"

    @pytest.mark.asyncio
    async def test_delete_referenced_conflict(self, client):
        created = await client.post(
            "/api/v1/categories",
            params={"year": 2024},
            json={"name": "Snacks", "type": "expense"},
            headers=USER,
        )
        category_id = created.json()["data"]["id"]
        await _post_transaction(client, categoryId=category_id)

        response = await client.delete(
            f"/api/v1/categories/{category_id}", params={"year": 2024}, headers=USER
        )

        assert response.status_code == 409
        assert "1 transaction(s)" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_rename_missing(self, client):
        response = await client.put(
            "/api/v1/categories/999", params={"year": 2024}, json={"name": "X"}, headers=USER
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestTransactionRoutes:
    """Tests for /api/v1/transactions."""

    @pytest.mark.asyncio
    async def test_invalid_year(self, client):
        response = await client.get("/api/v1/transactions", params={"year": "soon"}, headers=USER)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Invalid query.year",
            "code": "BAD_REQUEST",
        }

    @pytest.mark.asyncio
    async def test_create_and_get(self, client):
        created = await _post_transaction(client)

        assert created.status_code == 201
        data = created.json()["data"]
        assert data["amount"] == 100.0
        assert data["categoryName"] == "Foods & Treats"
        assert data["date"] == "2024-03-15 00:00:00"

        fetched = await client.get(
            f"/api/v1/transactions/{data['id']}", params={"year": 2024}, headers=USER
        )
        assert fetched.json()["data"] == data

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_create_non_positive_amount(self, client, amount):
        response = await _post_transaction(client, amount=amount)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1e20", "1e30"])
    async def test_create_amount_too_large(self, client, amount):
        response = await _post_transaction(client, amount=amount)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Amount is too large",
            "code": "BAD_REQUEST",
        }

        assert response.status_code == 400
        assert response.json()["message"] == "Amount must be greater than 0"

    @pytest.mark.asyncio
    async def test_create_missing_fields(self, client):
        response = await client.post("/api/v1/transactions", json={"amount": 5}, headers=USER)

        assert response.status_code == 400
        assert response.json()["message"] == "Amount, date, type, and category are required"

    @pytest.mark.asyncio
    async def test_get_missing(self, client):
        response = await client.get("/api/v1/transactions/99", params={"year": 2024}, headers=USER)

        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_pagination(self, client):
        for day in range(1, 6):
            await _post_transaction(client, date=f"2024-01-0{day}")

        response = await client.get(
            "/api/v1/transactions", params={"year": 2024, "page": 3, "limit": 2}, headers=USER
        )

        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {
            "currentPage": 3,
            "pageSize": 2,
            "totalPages": 3,
            "totalCount": 5,
            "hasNextPage": False,
            "hasPrevPage": True,
        }

    @pytest.mark.asyncio
    async def test_page_size_clamped(self, client):
        await _post_transaction(client)

        response = await client.get(
            "/api/v1/transactions", params={"year": 2024, "limit": 10000, "page": "x"}, headers=USER
        )

        pagination = response.json()["pagination"]
        assert pagination["pageSize"] == 100
        assert pagination["currentPage"] == 1

    @pytest.mark.asyncio
    async def test_range(self, client):
        await _post_transaction(client, date="2024-02-10")
        await _post_transaction(client, date="2024-03-10")

        response = await client.get(
            "/api/v1/transactions/range",
            params={"year": 2024, "startDate": "2024-03-01", "endDate": "2024-03-31"},
            headers=USER,
        )

        assert [t["date"] for t in response.json()["data"]] == ["2024-03-10 00:00:00"]

    @pytest.mark.asyncio
    async def test_range_missing_bound(self, client):
        response = await client.get(
            "/api/v1/transactions/range",
            params={"year": 2024, "startDate": "2024-03-01"},
            headers=USER,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stats(self, client):
        await _post_transaction(client, amount=500, type="income", categoryId=1)
        await _post_transaction(client, amount=200)

        response = await client.get(
            "/api/v1/transactions/stats", params={"year": 2024}, headers=USER
        )

        data = response.json()["data"]
        assert data["totalIncome"] == 500.0
        assert data["totalExpenses"] == 200.0
        assert data["netBalance"] == 300.0
        assert data["monthlyStats"]["2024-03"] == {"income": 500.0, "expenses": 200.0}

    @pytest.mark.asyncio
    async def test_update_moves_year(self, client):
        created = (await _post_transaction(client)).json()["data"]

        response = await client.put(
            f"/api/v1/transactions/{created['id']}",
            params={"year": 2024},
            json={"amount": 80, "date": "2025-02-01", "type": "expense", "categoryId": 9},
            headers=USER,
        )

        assert response.status_code == 200
        assert response.json()["data"]["date"] == "2025-02-01 00:00:00"
        years = await client.get("/api/v1/years", headers=USER)
        assert years.json()["data"] == [2025, 2024]

    @pytest.mark.asyncio
    async def test_delete(self, client):
        created = (await _post_transaction(client)).json()["data"]

        response = await client.delete(
            f"/api/v1/transactions/{created['id']}", params={"year": 2024}, headers=USER
        )

        assert response.json() == {"success": True, "message": "Transaction deleted successfully"}

    @pytest.mark.asyncio
    async def test_storage_failure_is_opaque(self, client, registry):
        """Driver detail never reaches the response body."""
        conn = await registry.get_connection("42", 2024)
        conn.close()

        response = await client.get("/api/v1/transactions", params={"year": 2024}, headers=USER)

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "code": "STORAGE_FAILURE",
        }


class TestShardRoutes:
    """Tests for /api/v1/years and /api/v1/backups."""

    @pytest.mark.asyncio
    async def test_years(self, client):
        await _post_transaction(client, date="2023-06-01")
        await _post_transaction(client, date="2024-06-01")

        response = await client.get("/api/v1/years", headers=USER)

        assert response.json() == {"success": True, "data": [2024, 2023]}

    @pytest.mark.asyncio
    async def test_backup_requires_superadmin(self, client):
        await _post_transaction(client)

        response = await client.post("/api/v1/backups", params={"year": 2024}, headers=USER)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_backup(self, client, registry):
        await _post_transaction(client)

        response = await client.post(
            "/api/v1/backups", params={"year": 2024, "tenantId": "42"}, headers=ADMIN
        )

        assert response.status_code == 200
        name = response.json()["data"]["backup"]
        assert name.startswith("backup_tenant_42_2024.db_")
        assert (registry.data_dir / name).is_file()

    @pytest.mark.asyncio
    async def test_backup_missing_shard(self, client):
        response = await client.post(
            "/api/v1/backups", params={"year": 2020, "tenantId": "42"}, headers=ADMIN
        )

        assert response.json() == {"success": True, "data": {"backup": None}}
