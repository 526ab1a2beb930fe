"""
Tests for table store backends
"""

import json

import httpx
import pytest

from banking_panel.storage import (
    BackendError, Embed, InMemoryTableStore, RestTableStore, TableStore
)


@pytest.fixture
def store():
    """Create in-memory table store for tests"""
    return InMemoryTableStore()


class TestInMemoryTableStore:
    """Test in-memory select/insert/update/delete"""

    def test_insert_assigns_id_and_created_at(self, store):
        row = store.insert("profiles", {"user_id": "u1", "full_name": "Asha"})
        assert row["id"]
        assert row["created_at"]
        assert row["full_name"] == "Asha"
        assert store.count("profiles") == 1

    def test_insert_duplicate_id_rejected(self, store):
        store.insert("profiles", {"id": "p1", "user_id": "u1"})
        with pytest.raises(BackendError):
            store.insert("profiles", {"id": "p1", "user_id": "u2"})

    def test_select_with_equality_filters(self, store):
        store.insert("profiles", {"user_id": "u1", "role": "staff"})
        store.insert("profiles", {"user_id": "u2", "role": "admin"})
        store.insert("profiles", {"user_id": "u3", "role": "staff"})

        staff = store.select("profiles", {"role": "staff"})
        assert [r["user_id"] for r in staff] == ["u1", "u3"]

    def test_select_order_descending_breaks_ties_by_insertion(self, store):
        for user_id in ("u1", "u2", "u3"):
            store.insert("profiles", {"user_id": user_id, "created_at": "2024-01-01T00:00:00+00:00"})

        rows = store.select("profiles", order_by="created_at", descending=True)
        assert [r["user_id"] for r in rows] == ["u3", "u2", "u1"]

    def test_select_returns_copies(self, store):
        store.insert("profiles", {"id": "p1", "full_name": "Asha"})
        row = store.select("profiles")[0]
        row["full_name"] = "Changed"
        assert store.select("profiles")[0]["full_name"] == "Asha"

    def test_select_embeds_parent_row(self, store):
        store.insert("profiles", {"id": "p1", "full_name": "Asha"})
        store.insert("bank_details", {"id": "b1", "staff_id": "p1"})
        store.insert("bank_details", {"id": "b2", "staff_id": "missing"})

        embed = Embed(alias="profiles", table="profiles", foreign_key="staff_id")
        rows = {r["id"]: r for r in store.select("bank_details", embed=embed)}
        assert rows["b1"]["profiles"]["full_name"] == "Asha"
        assert rows["b2"]["profiles"] is None

    def test_select_one(self, store):
        store.insert("profiles", {"user_id": "u1"})
        assert store.select_one("profiles", {"user_id": "u1"})["user_id"] == "u1"
        assert store.select_one("profiles", {"user_id": "nobody"}) is None

    def test_select_one_rejects_multiple_rows(self, store):
        store.insert("profiles", {"role": "staff"})
        store.insert("profiles", {"role": "staff"})
        with pytest.raises(BackendError):
            store.select_one("profiles", {"role": "staff"})

    def test_update_matching_rows(self, store):
        store.insert("bank_details", {"id": "b1", "staff_id": "p1", "status": "active"})
        store.insert("bank_details", {"id": "b2", "staff_id": "p2", "status": "active"})

        updated = store.update("bank_details", {"id": "b1"}, {"status": "inactive"})
        assert len(updated) == 1
        assert updated[0]["status"] == "inactive"
        assert store.select_one("bank_details", {"id": "b2"})["status"] == "active"

    def test_delete_matching_rows(self, store):
        store.insert("bank_details", {"id": "b1", "staff_id": "p1"})
        store.insert("bank_details", {"id": "b2", "staff_id": "p2"})

        assert store.delete("bank_details", {"id": "b1", "staff_id": "p2"}) == 0
        assert store.delete("bank_details", {"id": "b1", "staff_id": "p1"}) == 1
        assert [r["id"] for r in store.select("bank_details")] == ["b2"]

    def test_is_table_store(self, store):
        assert isinstance(store, TableStore)


class TestRestTableStore:
    """Test the REST dialect against a mock transport"""

    def setup_method(self):
        self.requests = []
        self.responses = []

    def _store(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.responses.pop(0)

        return RestTableStore("https://backend.example.com/", "service-key",
                              transport=httpx.MockTransport(handler))

    def test_select_builds_filters_order_and_embed(self):
        self.responses.append(httpx.Response(200, json=[{"id": "b1"}]))
        store = self._store()

        rows = store.select(
            "bank_details", {"staff_id": "p1"}, order_by="created_at", descending=True,
            embed=Embed(alias="profiles", table="profiles", foreign_key="staff_id")
        )

        assert rows == [{"id": "b1"}]
        request = self.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/bank_details"
        assert request.url.params["staff_id"] == "eq.p1"
        assert request.url.params["order"] == "created_at.desc"
        assert request.url.params["select"] == "*,profiles:staff_id(*)"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"

    def test_insert_requests_representation(self):
        self.responses.append(httpx.Response(201, json=[{"id": "p1", "user_id": "u1"}]))
        store = self._store()

        row = store.insert("profiles", {"user_id": "u1"})

        assert row == {"id": "p1", "user_id": "u1"}
        request = self.requests[0]
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        assert json.loads(request.content) == {"user_id": "u1"}

    def test_update_and_delete(self):
        self.responses.append(httpx.Response(200, json=[{"id": "b1", "status": "inactive"}]))
        self.responses.append(httpx.Response(200, json=[{"id": "b1"}]))
        store = self._store()

        updated = store.update("bank_details", {"id": "b1"}, {"status": "inactive"})
        removed = store.delete("bank_details", {"id": "b1", "staff_id": "p1"})

        assert updated[0]["status"] == "inactive"
        assert removed == 1
        assert self.requests[0].method == "PATCH"
        assert self.requests[1].method == "DELETE"
        assert self.requests[1].url.params["staff_id"] == "eq.p1"

    def test_error_status_raises_backend_error(self):
        self.responses.append(httpx.Response(
            409, json={"message": "duplicate key value violates unique constraint"}
        ))
        store = self._store()

        with pytest.raises(BackendError) as exc_info:
            store.insert("profiles", {"user_id": "u1"})

        assert exc_info.value.status_code == 409
        assert "duplicate key" in exc_info.value.message

    def test_connection_error_raises_backend_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        store = RestTableStore("https://backend.example.com", "key",
                               transport=httpx.MockTransport(handler))
        with pytest.raises(BackendError):
            store.select("profiles")

    def test_null_and_boolean_filters(self):
        params = RestTableStore._filter_params({"freeze_reason": None, "flag": True})
        assert params == {"freeze_reason": "is.null", "flag": "eq.true"}
