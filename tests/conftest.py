"""
Shared fixtures: a throwaway SQLite database per test and a store on top.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.settings import config
from connectors import encryption
from connectors.credential_store import CredentialStore
from database.models import Base


@pytest.fixture(autouse=True)
def plaintext_tokens(monkeypatch):
    """Store tokens unencrypted unless a test opts in."""
    monkeypatch.setattr(config, "token_encryption_key", "")
    monkeypatch.setattr(encryption, "_initialised", False)
    monkeypatch.setattr(encryption, "_fernet", None)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return CredentialStore(session_factory)
