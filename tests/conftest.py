"""
tests/conftest.py

Safe env defaults (no external IO) plus hand-written fakes for the aiohttp
session and MongoDB collections used across the suite.
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("DISABLE_DB", "1")
os.environ.pop("MONGODB_URL", None)
os.environ.pop("SENTRY_DSN", None)

project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


# --------------------------------------------------------------------------
# HTTP fakes
# --------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self.status = status
        self._payload = payload
        self.released = False

    async def json(self, content_type: Optional[str] = None):
        if isinstance(self._payload, BaseException):
            raise self._payload
        return self._payload

    async def release(self):
        self.released = True


class FakeSession:
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self, *responses: Any):
        self._responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def request(self, method: str, url: str, **kwargs: Any):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(item)


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


# --------------------------------------------------------------------------
# MongoDB fakes
# --------------------------------------------------------------------------

class FakeResult:
    def __init__(self, matched=0, modified=0, deleted=0, inserted_id=None, upserted_id=None):
        self.matched_count = matched
        self.modified_count = modified
        self.deleted_count = deleted
        self.inserted_id = inserted_id
        self.upserted_id = upserted_id
        self.acknowledged = True


def _match(doc: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in (flt or {}).items())


class FakeCollection:
    def __init__(self, unique_keys: Optional[List[tuple]] = None):
        self.docs: List[Dict[str, Any]] = []
        self.index_calls: List[Any] = []
        self.unique_keys = list(unique_keys or [])
        self.fail_with: Optional[Exception] = None

    def _check_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def create_indexes(self, indexes, *a, **k):
        self.index_calls.append(list(indexes))
        return None

    def insert_one(self, doc: Dict[str, Any]):
        self._check_fail()
        from pymongo.errors import DuplicateKeyError

        for keys in self.unique_keys:
            if any(all(d.get(k) == doc.get(k) for k in keys) for d in self.docs):
                raise DuplicateKeyError("duplicate key")
        if "_id" not in doc:
            doc["_id"] = f"oid{len(self.docs) + 1}"
        self.docs.append(dict(doc))
        return FakeResult(inserted_id=doc["_id"])

    def find_one(self, flt: Dict[str, Any], *a, **k):
        self._check_fail()
        for d in self.docs:
            if _match(d, flt):
                return dict(d)
        return None

    def find(self, flt: Optional[Dict[str, Any]] = None, sort=None, limit: int = 0, **k):
        self._check_fail()
        out = [dict(d) for d in self.docs if _match(d, flt or {})]
        for field, direction in reversed(list(sort or [])):
            out.sort(key=lambda d: d.get(field), reverse=(direction < 0))
        if limit:
            out = out[:limit]
        return out

    def update_one(self, flt: Dict[str, Any], upd: Dict[str, Any], upsert: bool = False, **k):
        self._check_fail()
        for d in self.docs:
            if _match(d, flt):
                d.update(upd.get("$set", {}))
                return FakeResult(matched=1, modified=1)
        if upsert:
            doc = dict(flt)
            doc.update(upd.get("$set", {}))
            doc.update(upd.get("$setOnInsert", {}))
            res = self.insert_one(doc)
            return FakeResult(upserted_id=res.inserted_id)
        return FakeResult()

    def delete_one(self, flt: Dict[str, Any]):
        self._check_fail()
        for i, d in enumerate(self.docs):
            if _match(d, flt):
                self.docs.pop(i)
                return FakeResult(deleted=1)
        return FakeResult()

    def delete_many(self, flt: Dict[str, Any]):
        self._check_fail()
        before = len(self.docs)
        self.docs = [d for d in self.docs if not _match(d, flt)]
        return FakeResult(deleted=before - len(self.docs))

    def count_documents(self, flt: Dict[str, Any]):
        self._check_fail()
        return sum(1 for d in self.docs if _match(d, flt))


class FakeDB:
    def __init__(self):
        self._collections: Dict[str, FakeCollection] = {
            "users": FakeCollection(unique_keys=[("user_id",)]),
            "stars": FakeCollection(unique_keys=[("user_id", "snippet_id")]),
        }

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection()
        return self._collections[name]

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def fake_db():
    return FakeDB()
