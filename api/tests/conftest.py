"""Pytest configuration and shared fixtures.

This module provides:
- A fresh in-memory SQLite database per test (sqlite+aiosqlite, StaticPool)
- Async session fixtures for repository/service tests
- FastAPI test client for route integration tests
- Per-test certificate and asset directories
- A fake PDF converter so tests do not need the Cairo system library
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("DEBUG", "true")

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables on Base.metadata)
from core.config import Settings, clear_settings_cache
from core.database import Base
from core.wide_event import init_wide_event

# =============================================================================
# Test Settings
# =============================================================================

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_ADMIN_TOKEN = "test-admin-token"
TEST_BASE_URL = "https://certs.example.com"

# Minimal bytes returned by the patched SVG -> PDF converter
FAKE_PDF = b"%PDF-1.4 fake certificate\n%%EOF"


@pytest.fixture
def certs_dir(tmp_path: Path) -> Path:
    return tmp_path / "certificates"


@pytest.fixture
def assets_dir(tmp_path: Path) -> Path:
    path = tmp_path / "assets"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(certs_dir: Path, assets_dir: Path) -> Settings:
    """Settings pointing at the in-memory database and per-test directories."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        admin_token=TEST_ADMIN_TOKEN,
        base_url=TEST_BASE_URL,
        certs_dir=str(certs_dir),
        assets_dir=str(assets_dir),
        smtp_host="",
        cors_allowed_origins="",
        debug=True,
    )


@pytest.fixture(autouse=True)
def setup_wide_event():
    """Initialize wide_event context for all tests.

    Services use set_wide_event_fields() which requires context initialization.
    In production this is done by middleware; in tests we do it here.
    """
    init_wide_event()
    yield


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine]:
    """Create a fresh in-memory database engine for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide a database session for each test."""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Rendering Fixtures
# =============================================================================


@pytest.fixture
def fake_pdf_converter() -> Generator[MagicMock]:
    """Replace CairoSVG conversion; the SVG passed in is still fully built."""
    with patch("rendering.certificates.svg_to_pdf", return_value=FAKE_PDF) as mock:
        yield mock


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def app(
    test_engine: AsyncEngine,
    test_settings: Settings,
) -> AsyncGenerator[FastAPI]:
    """Create FastAPI app configured for testing.

    The lifespan is not run by ASGITransport, so the test engine and session
    maker are stored on app.state directly.
    """
    # Import here so environment defaults above are applied first
    from main import create_app

    fastapi_app = create_app(test_settings)
    fastapi_app.state.engine = test_engine
    fastapi_app.state.session_maker = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    yield fastapi_app


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for testing routes."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_ADMIN_TOKEN}"}


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio backend for anyio (required by httpx)."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
