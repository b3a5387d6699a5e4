import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory DB and no external API keys for tests
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["PERPLEXITY_API_KEY"] = ""
os.environ["LLM_PROVIDER"] = "auto"
os.environ["DATABASE_PATH"] = ":memory:"

from medaid.main import app


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import medaid.database as db_mod

    if db_mod._db is not None:
        try:
            await db_mod._db.close()
        except Exception:
            pass
    db_mod._db = None
    db_mod.DATABASE_PATH = ":memory:"

    await db_mod.init_db()
    database = await db_mod.get_db()
    yield database
    await db_mod.close_db()


@pytest.fixture
def fresh_singletons():
    """Drop the process-wide store and conversation log between tests."""
    import medaid.services.assistant as assistant_mod
    import medaid.services.profile_store as store_mod

    store_mod._store = None
    assistant_mod._log = None
    yield
    store_mod._store = None
    assistant_mod._log = None


@pytest_asyncio.fixture
async def async_client(db, fresh_singletons):
    """Provide an async httpx client for HTTP tests (lifespan is not run; db fixture initializes)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
