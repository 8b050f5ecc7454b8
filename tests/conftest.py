"""Shared pytest fixtures for all tests."""
import asyncio
import itertools
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

import models  # noqa: F401  registers the tables
from database import Base
from models import Book, Course, Post, RequiredStatus, Section, SectionBook, User


def make_engine(path: Path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class Catalog:
    """Builds catalog rows for a test."""

    _product_ids = itertools.count(1000)

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, row):
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def book(self, **fields) -> Book:
        fields.setdefault("title", "Introduction to Algorithms")
        fields.setdefault("bookstore_id", f"P{next(self._product_ids)}")
        return await self.add(Book(**fields))

    async def user(self, netid: str) -> User:
        return await self.add(User(netid=netid, email=f"{netid}@example.edu", first_name=netid.upper()))

    async def course(self, name: str, *codes: str):
        course = await self.add(Course(name=name))
        return [await self.add(Section(cid=course.cid, code=code)) for code in codes]

    async def assign(self, book: Book, section: Section, status: RequiredStatus = RequiredStatus.REQUIRED):
        return await self.add(SectionBook(sid=section.sid, bid=book.bid, required_status=status))

    async def post(self, book: Book, user: User, price, active: bool = True) -> Post:
        return await self.add(Post(bid=book.bid, uid=user.uid, price=price, active=active))


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Session on a throwaway SQLite database."""
    engine = make_engine(tmp_path / "test.db")
    await create_tables(engine)
    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with SessionLocal() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def catalog(db) -> Catalog:
    return Catalog(db)


@pytest.fixture
def app_sessions(tmp_path):
    """Session factory for the database the web app is pointed at."""
    from database import get_db
    from main import app

    engine = make_engine(tmp_path / "app.db")
    asyncio.run(create_tables(engine))
    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with SessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield SessionLocal
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


@pytest.fixture
def client(app_sessions):
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


def seed(app_sessions, build):
    """Run `build(catalog)` against the app database and return its result."""
    async def _run():
        async with app_sessions() as session:
            return await build(Catalog(session))

    return asyncio.run(_run())


@pytest.fixture
def seeder(app_sessions):
    return lambda build: seed(app_sessions, build)


@pytest.fixture
def cli_sessions(tmp_path, monkeypatch):
    """Point sync_catalog at a throwaway database and return its session factory."""
    import sync_catalog

    engine = make_engine(tmp_path / "cli.db")
    asyncio.run(create_tables(engine))
    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def init_db():
        await create_tables(engine)

    monkeypatch.setattr(sync_catalog, "engine", engine)
    monkeypatch.setattr(sync_catalog, "AsyncSessionLocal", SessionLocal)
    monkeypatch.setattr(sync_catalog, "init_db", init_db)
    monkeypatch.setattr(sync_catalog, "configure_logging", lambda: None)
    yield SessionLocal
    asyncio.run(engine.dispose())
