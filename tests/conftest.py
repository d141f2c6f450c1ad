from datetime import date

import pytest

from subledger.models import Category, Obligation
from subledger.store import MemoryStore
from web_app.app import create_app


@pytest.fixture
def categories():
    return [
        Category(id="c-subs", name="Subscriptions", kind="expense"),
        Category(id="c-perks", name="Card Perks", kind="income"),
    ]


@pytest.fixture
def make_obligation():
    def _make(**kw):
        base = dict(
            id="sub-1",
            name="Spotify",
            amount=11.99,
            cadence="monthly",
            category_id="c-subs",
            start_date=date(2024, 1, 31),
        )
        base.update(kw)
        return Obligation(**base)
    return _make


@pytest.fixture
def store(categories, make_obligation):
    return MemoryStore(obligations=[make_obligation()], categories=categories)


@pytest.fixture
def client(store):
    app = create_app(store=store, access_token="")
    app.config["TESTING"] = True
    return app.test_client()
