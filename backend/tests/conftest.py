"""
Shared fixtures: an in-memory stand-in for the motor database.

Every collection call yields to the event loop once, like a real round trip,
so interleavings between concurrent tasks can be exercised.
"""
import asyncio
import copy
from datetime import datetime
from types import SimpleNamespace

import pytest
from bson import ObjectId

from sneakerstore.services.payment_providers.simulation_service import SimulationGateway


def _get_path(document, path):
    value = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _matches(document, query):
    for key, condition in query.items():
        value = _get_path(document, key)
        if isinstance(condition, dict):
            for operator, operand in condition.items():
                if operator == "$in" and value not in operand:
                    return False
                if operator == "$lt" and (value is None or not value < operand):
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction=1):
        self._documents.sort(key=lambda doc: doc.get(key) or datetime.min, reverse=direction == -1)
        return self

    def skip(self, count):
        self._documents = self._documents[count:]
        return self

    def limit(self, count):
        self._documents = self._documents[:count]
        return self

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        return self._documents if length is None else self._documents[:length]

    def __aiter__(self):
        self._iter = iter(self._documents)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.documents = []

    async def find_one(self, query):
        await asyncio.sleep(0)
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(doc) for doc in self.documents if _matches(doc, query or {})])

    async def count_documents(self, query):
        await asyncio.sleep(0)
        return len([doc for doc in self.documents if _matches(doc, query)])

    async def insert_one(self, document):
        await asyncio.sleep(0)
        document = copy.deepcopy(document)
        document.setdefault("_id", ObjectId())
        self.documents.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def update_one(self, query, update):
        await asyncio.sleep(0)
        for document in self.documents:
            if _matches(document, query):
                for key, value in update.get("$set", {}).items():
                    document[key] = copy.deepcopy(value)
                for key, value in update.get("$inc", {}).items():
                    document[key] = document.get(key, 0) + value
                for key, value in update.get("$push", {}).items():
                    document.setdefault(key, []).append(copy.deepcopy(value))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())


USER_ID = "user-1"


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def catalog(db):
    """One sneaker with two variants: 42/black (5 in stock) and 43/white (1 in stock)."""
    sneaker_id = ObjectId()
    black_42 = ObjectId()
    white_43 = ObjectId()

    db.sneakers.documents.append({
        "_id": sneaker_id,
        "name": "Air Runner",
        "brand": "Nike",
        "slug": "air-runner",
        "price": 349.9,
        "final_price": 299.9,
        "images": [{"url": "https://cdn.example.com/air-runner.png", "is_primary": True}]
    })
    db.sneaker_variants.documents.extend([
        {"_id": black_42, "sneaker_id": sneaker_id, "size": "42", "color": "black", "stock": 5, "price": 300.0},
        {"_id": white_43, "sneaker_id": sneaker_id, "size": "43", "color": "white", "stock": 1, "price": None},
    ])

    return SimpleNamespace(
        sneaker_id=str(sneaker_id),
        black_42=str(black_42),
        white_43=str(white_43)
    )


@pytest.fixture
def address(db):
    address_id = ObjectId()
    db.addresses.documents.append({"_id": address_id, "user_id": USER_ID, "street": "Rua Augusta, 100"})
    return str(address_id)


@pytest.fixture(autouse=True)
def reset_simulation_gateway():
    SimulationGateway._payments.clear()
    yield
    SimulationGateway._payments.clear()
