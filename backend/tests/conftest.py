"""Pytest configuration and fixtures."""
import pytest
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.database import Base, get_db
from marketplace.models.category import Category
from marketplace.models.dataset import Dataset
from marketplace.models.user import User
from marketplace.auth.security import hash_password, create_access_token
from marketplace.rate_limit import limiter
from marketplace.routers.download import get_packager
from main import app

from fakes import FakePackager

limiter.enabled = False


@pytest.fixture
async def test_db():
    """Create test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "datasets"
    root.mkdir()
    return root


@pytest.fixture
def archive_dir(tmp_path, monkeypatch):
    """Point the download pipeline at a per-test temp dir and storage root."""
    from marketplace.config import settings

    temp_dir = tmp_path / "archives"
    monkeypatch.setattr(settings, "ARCHIVE_TEMP_DIR", str(temp_dir))
    monkeypatch.setattr(settings, "DATASET_STORAGE_ROOT", str(tmp_path / "datasets"))
    return temp_dir


@pytest.fixture
def fake_packager():
    return FakePackager()


@pytest.fixture
async def client(test_db, archive_dir, fake_packager):
    """HTTP client bound to the app with the test session and a fake packager."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_packager] = lambda: fake_packager

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db, email, role="user", status="active"):
    user = User(
        name=email.split("@")[0].title(),
        email=email,
        password_hash=hash_password("Test1234a"),
        status=status,
        user_role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_headers(user) -> dict:
    token = create_access_token(data={"sub": user.uuid, "email": user.email, "role": user.user_role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def buyer(test_db):
    return await _create_user(test_db, "buyer@example.com")


@pytest.fixture
async def other_user(test_db):
    return await _create_user(test_db, "other@example.com")


@pytest.fixture
async def admin_user(test_db):
    return await _create_user(test_db, "admin@example.com", role="admin")


@pytest.fixture
async def category(test_db):
    category = Category(name="Finance", slug="finance", description="Financial datasets")
    test_db.add(category)
    await test_db.commit()
    await test_db.refresh(category)
    return category


async def _create_dataset(db, storage_root, category, slug, price, content):
    relative = f"{category.slug}/{slug}.csv"
    source = storage_root / relative
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_bytes(content)

    dataset = Dataset(
        title=slug.replace("-", " ").title(),
        slug=slug,
        description=f"Test dataset {slug}",
        price=price,
        record_count=3,
        data_format="CSV",
        update_frequency="Monthly",
        file_path=relative,
        category_id=category.uuid,
    )
    db.add(dataset)
    await db.commit()
    await db.refresh(dataset)
    return dataset


@pytest.fixture
async def dataset(test_db, storage_root, category):
    return await _create_dataset(
        test_db, storage_root, category, "global-markets", 299.99, b"date,index,close\n2025-04-01,SPX,5200\n"
    )


@pytest.fixture
async def second_dataset(test_db, storage_root, category):
    return await _create_dataset(
        test_db, storage_root, category, "investment-performance", 699.99, b"asset,return\nbonds,0.04\n"
    )
