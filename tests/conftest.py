import copy
import fnmatch
import itertools

import pytest
from fastapi.testclient import TestClient

from flexlaundry.airtable import AirtableError, get_airtable


class FakeRedis:
    """In-memory stand-in for the handful of Redis calls the app makes"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def incr(self, key):
        value = int(self.store.get(key) or 0) + 1
        self.store[key] = str(value)
        return value

    def expire(self, key, ttl):
        if key not in self.store:
            return False
        self.ttls[key] = ttl
        return True

    def ttl(self, key):
        return self.ttls.get(key, -2)

    def scan_iter(self, match="*"):
        return [key for key in list(self.store) if fnmatch.fnmatch(key, match)]


class FakeAirtable:
    """
    In-memory AirtableClient. Formulas are recorded but not evaluated, so tests
    seed only the rows a call should see.
    """

    def __init__(self):
        self.tables = {}
        self.formulas = []
        self.updates = []
        self._ids = itertools.count(1)

    def seed(self, table, record_id, fields, created_time="2025-10-01T09:00:00.000Z"):
        record = {"id": record_id, "fields": dict(fields), "createdTime": created_time}
        self.tables.setdefault(table, {})[record_id] = record
        return record

    def rows(self, table):
        return list(self.tables.get(table, {}).values())

    async def list_records(self, table, formula=None, max_records=None, sort=None, page_size=None):
        self.formulas.append((table, formula))
        records = [copy.deepcopy(r) for r in self.rows(table)]
        return records[:max_records] if max_records else records

    async def find_first(self, table, formula, sort=None):
        records = await self.list_records(table, formula=formula, max_records=1, sort=sort)
        return records[0] if records else None

    async def get_record(self, table, record_id):
        record = self.tables.get(table, {}).get(record_id)
        return copy.deepcopy(record) if record else None

    async def create_record(self, table, fields):
        record_id = f"rec{next(self._ids):04d}"
        return copy.deepcopy(self.seed(table, record_id, fields))

    async def update_record(self, table, record_id, fields):
        record = self.tables.get(table, {}).get(record_id)
        if record is None:
            raise AirtableError("Could not find record", status_code=404)
        record["fields"].update(fields)
        self.updates.append((table, record_id, dict(fields)))
        return copy.deepcopy(record)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def airtable():
    return FakeAirtable()


@pytest.fixture
def client(airtable):
    from flexlaundry.main import app

    app.dependency_overrides[get_airtable] = lambda: airtable
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def ops_client(client, monkeypatch):
    monkeypatch.setattr("flexlaundry.auth.OPS_AUTH_TOKEN", "ops-test-token")
    client.cookies.set("flex_ops_auth", "ops-test-token")
    return client


@pytest.fixture
def cron_headers(monkeypatch):
    monkeypatch.setattr("flexlaundry.webhook_security.CRON_SECRET", "cron-test-secret")
    return {"Authorization": "Bearer cron-test-secret"}
