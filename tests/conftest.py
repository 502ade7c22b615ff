"""Shared pytest fixtures for HyperFill gateway tests.

External collaborators (Aptos node, price API, LLM provider) are replaced
with the in-process doubles from tests/fakes.py so every test runs offline.
"""

from __future__ import annotations

import random

import pytest

from src.session.models import SessionContext
from tests.fakes import FakeChain, FakeFeed


@pytest.fixture()
def session() -> SessionContext:
    return SessionContext(session_id="test-session")


@pytest.fixture()
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def fake_feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture()
def seeded_rng() -> random.Random:
    return random.Random(42)
