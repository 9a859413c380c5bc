"""Pytest fixtures and configuration."""

from __future__ import annotations

import copy
import math
import re
from typing import Any, Iterator, Optional

import pytest
from bson.decimal128 import Decimal128
from pymongo.errors import BulkWriteError, OperationFailure
from pymongo.results import BulkWriteResult

# =============================================================================
# In-memory collection double
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(present: bool, value: Any, expected: Any) -> bool:
    if expected is None:
        return not present or value is None
    if not present:
        return False
    if isinstance(value, bool) or isinstance(expected, bool):
        return isinstance(value, bool) and isinstance(expected, bool) and value == expected
    if isinstance(value, float) and isinstance(expected, float) and math.isnan(value) and math.isnan(expected):
        return True
    return value == expected


def _apply_operator(present: bool, value: Any, op: str, arg: Any) -> bool:
    if op == "$exists":
        return present == bool(arg)
    if op == "$eq":
        return _equals(present, value, arg)
    if op == "$in":
        return any(_equals(present, value, item) for item in arg)
    if op == "$nin":
        return not any(_equals(present, value, item) for item in arg)
    if op == "$not":
        return not all(_apply_operator(present, value, sub_op, sub_arg) for sub_op, sub_arg in arg.items())
    if op == "$type":
        checks = {"number": _is_number, "string": lambda v: isinstance(v, str), "bool": lambda v: isinstance(v, bool)}
        return present and checks[arg](value)
    if op in ("$gte", "$lt"):
        if not present:
            return False
        if isinstance(value, Decimal128):
            value = value.to_decimal()
            if value.is_nan():
                return False
        elif not _is_number(value) or math.isnan(value):
            return False
        return value >= arg if op == "$gte" else value < arg
    if op == "$regex":
        # The server's PCRE classes are ASCII-only; Python's are not without re.ASCII
        return present and isinstance(value, str) and re.search(arg, value, re.ASCII) is not None
    raise NotImplementedError(op)


def matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    """Evaluate the subset of the MongoDB query language the engine emits."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
            continue
        if key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
            continue

        present = key in doc
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_apply_operator(present, value, op, arg) for op, arg in condition.items()):
                return False
        elif not _equals(present, value, condition):
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]], error: Optional[Exception] = None, fail_after: int = 0) -> None:
        self._docs = docs
        self._error = error
        self._fail_after = fail_after
        self.closed = False

    def __iter__(self) -> Iterator[dict[str, Any]]:
        for position, doc in enumerate(self._docs):
            if self._error is not None and position >= self._fail_after:
                raise self._error
            yield doc
        if self._error is not None and len(self._docs) <= self._fail_after:
            raise self._error

    def close(self) -> None:
        self.closed = True


class FakeCollection:
    """Collection double storing documents in a list."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.indexes: set[str] = {"_id_"}
        self.index_specs: dict[str, dict[str, Any]] = {}
        self.drop_index_errors: dict[str, Exception] = {}
        self.create_index_errors: dict[str, Exception] = {}
        self.rejected_ids: dict[Any, str] = {}
        self.acknowledged = True
        self.find_error: Optional[Exception] = None
        self.cursor_error: Optional[Exception] = None
        self.cursor_fail_after = 0
        self.bulk_write_calls: list[list[Any]] = []
        self.queries: list[dict[str, Any]] = []
        self.cursors: list[FakeCursor] = []

    def insert_many(self, docs: list[dict[str, Any]]) -> None:
        self.docs.extend(copy.deepcopy(docs))

    def get(self, doc_id: Any) -> Optional[dict[str, Any]]:
        for doc in self.docs:
            if doc["_id"] == doc_id:
                return doc
        return None

    def find(self, query: Optional[dict[str, Any]] = None, batch_size: int = 0, **kwargs: Any) -> FakeCursor:
        if self.find_error is not None:
            raise self.find_error
        query = query or {}
        self.queries.append(query)
        selected = [copy.deepcopy(doc) for doc in self.docs if matches(doc, query)]
        cursor = FakeCursor(selected, self.cursor_error, self.cursor_fail_after)
        self.cursors.append(cursor)
        return cursor

    def count_documents(self, query: dict[str, Any]) -> int:
        return sum(1 for doc in self.docs if matches(doc, query))

    def drop_index(self, name: str) -> None:
        if name in self.drop_index_errors:
            raise self.drop_index_errors[name]
        if name not in self.indexes:
            raise OperationFailure(
                f"index not found with name [{name}]",
                code=27,
                details={"ok": 0, "errmsg": f"index not found with name [{name}]", "code": 27, "codeName": "IndexNotFound"},
            )
        self.indexes.discard(name)
        self.index_specs.pop(name, None)

    def create_index(self, keys: list[tuple[str, int]], name: Optional[str] = None, **options: Any) -> str:
        name = name or "_".join(f"{field}_{direction}" for field, direction in keys)
        if name in self.create_index_errors:
            raise self.create_index_errors[name]
        spec = {"key": list(keys), **options}

        if name in self.indexes:
            existing = self.index_specs.get(name)
            if existing == spec:
                return name
            if existing is not None and existing["key"] == spec["key"]:
                code, code_name = 85, "IndexOptionsConflict"
            else:
                code, code_name = 86, "IndexKeySpecsConflict"
            message = f"An existing index has the same name as the requested index: {name}"
            raise OperationFailure(message, code=code, details={"ok": 0, "errmsg": message, "code": code, "codeName": code_name})

        self.indexes.add(name)
        self.index_specs[name] = spec
        return name

    def bulk_write(self, requests: list[Any], ordered: bool = True) -> BulkWriteResult:
        self.bulk_write_calls.append(list(requests))
        matched = modified = 0
        write_errors = []

        for index, request in enumerate(requests):
            doc_id = request._filter["_id"]
            if doc_id in self.rejected_ids:
                write_errors.append({"index": index, "code": 121, "errmsg": self.rejected_ids[doc_id]})
                continue
            doc = self.get(doc_id)
            if doc is None:
                continue
            matched += 1
            before = copy.deepcopy(doc)
            for name, value in request._doc.get("$set", {}).items():
                doc[name] = value
            for name in request._doc.get("$unset", {}):
                doc.pop(name, None)
            if doc != before:
                modified += 1

        result = {
            "writeErrors": write_errors,
            "writeConcernErrors": [],
            "nInserted": 0,
            "nUpserted": 0,
            "nMatched": matched,
            "nModified": modified,
            "nRemoved": 0,
            "upserted": [],
        }
        if write_errors:
            raise BulkWriteError(result)
        return BulkWriteResult(result, self.acknowledged)


class FakeDatabase:
    def __init__(self, name: str = "docmigrate-test") -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Empty in-memory database."""
    return FakeDatabase()


@pytest.fixture
def legacy_otps() -> list[dict[str, Any]]:
    """OTP documents written by several generations of the application."""
    return [
        {"_id": "otp-email-legacy", "otp": "111111", "type": "email", "email": "Foo@Bar.com ", "purpose": "registration"},
        {"_id": "otp-phone-legacy", "otp": "222222", "type": "phone", "phoneNumber": " +1 555 0100 ", "purpose": "password-reset", "attempts": 2},
        {"_id": "otp-heuristic-email", "otp": "333333", "contact": "Someone@Example.org", "purpose": "verification"},
        {"_id": "otp-heuristic-phone", "otp": "444444", "contact": "0412 345 678"},
        {"_id": "otp-unknown-purpose", "otp": "555555", "contactType": "email", "contact": "a@b.io", "purpose": "some-unknown-value", "attempts": 1, "verified": True},
        {"_id": "otp-unclassifiable", "otp": "666666", "contact": "n/a"},
        {
            "_id": "otp-current",
            "otp": "777777",
            "contact": "done@example.com",
            "contactType": "email",
            "purpose": "login",
            "attempts": 0,
            "verified": False,
        },
    ]


@pytest.fixture
def otp_collection(fake_db: FakeDatabase, legacy_otps: list[dict[str, Any]]) -> FakeCollection:
    """otps collection seeded with legacy documents and the obsolete indexes."""
    collection = fake_db["otps"]
    collection.insert_many(legacy_otps)
    collection.indexes.update({"email_type_purpose", "phone_type_purpose", "ttl_index"})
    return collection
