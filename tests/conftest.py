"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import random
from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.db.schema import Base
from src.phantom.board import Board

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def rng() -> random.Random:
    """Seeded, so power-up grants and fallback moves are reproducible."""
    return random.Random(1234)


@pytest.fixture
def kings_only_board() -> Board:
    """Only the kings, on their canonical squares (e1 / e8)."""
    return Board.from_fen("4k3/8/8/8/8/8/8/4K3")


@pytest.fixture
def e_file_check_board() -> Board:
    """White king on e1 checked by a black rook on e8 (black king tucked away on a8)."""
    return Board.from_fen("k3r3/8/8/8/8/8/8/4K3")
