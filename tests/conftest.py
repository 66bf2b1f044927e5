from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Union

import pytest

from stockbot.dialogue import DialogueController
from stockbot.models import CatalogResult, Intent, Product
from stockbot.session_store import SessionStore


def make_product(name: str, product_id: str, price: str = "10.00", stock: Optional[str] = "3") -> Product:
    return Product(
        name=name,
        id=product_id,
        price=Decimal(price),
        stock=Decimal(stock) if stock is not None else None,
    )


CUBA_PRODUCTS = [
    make_product("Cuba Inox 50mm", "101"),
    make_product("Cuba Inox 40mm", "102"),
    make_product("Cuba Dupla Granito", "103"),
    make_product("Cuba Tanque Branca", "104", stock=None),
    make_product("Cuba Redonda Louça", "105"),
]


class FakeClassifier:
    """Returns queued intents (or raises queued exceptions) and records messages."""

    def __init__(self, *outcomes: Union[Intent, Exception]) -> None:
        self.outcomes: List[Union[Intent, Exception]] = list(outcomes)
        self.messages: List[str] = []

    async def classify(self, message: str) -> Intent:
        self.messages.append(message)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeCatalog:
    """Serves canned CatalogResults per term and records searched terms."""

    def __init__(self, results: Optional[Dict[str, CatalogResult]] = None) -> None:
        self.results = results or {}
        self.terms: List[str] = []

    async def search_catalog(self, term: str) -> CatalogResult:
        self.terms.append(term)
        return self.results.get(term, CatalogResult(success=False, error=f"Não encontrei nenhum produto para \"{term}\"."))


@pytest.fixture
def cuba_catalog() -> FakeCatalog:
    return FakeCatalog({"cuba": CatalogResult(success=True, products=CUBA_PRODUCTS)})


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


def build_controller(store: SessionStore, classifier: FakeClassifier, catalog: FakeCatalog, **kwargs) -> DialogueController:
    return DialogueController(store=store, classifier=classifier, catalog=catalog, **kwargs)
