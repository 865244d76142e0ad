"""Pytest configuration and fixtures."""

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.pool import StaticPool

from datatables_engine import DataTablesRequest, DataTablesSettings

Base = declarative_base()


class School(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)

    students = relationship("Student", back_populates="school")


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    email = Column(String, nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=True)

    school = relationship(School, back_populates="students")


STUDENTS = [
    # id, name, age, school_id
    (1, "Alice Smith", 20, 1),
    (2, "Bob Jones", 22, 2),
    (3, "Carol White", 19, 1),
    (4, "Dan Smith", 25, 2),
    (5, "Eve Black", 22, None),
]


@pytest_asyncio.fixture
async def db_session():
    """Async in-memory SQLite session seeded with schools and students."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        session.add_all(
            [School(id=1, name="North High"), School(id=2, name="South Academy")]
        )
        session.add_all(
            [
                Student(
                    id=id_,
                    name=name,
                    age=age,
                    email=f"{name.split()[0].lower()}@example.com",
                    school_id=school_id,
                )
                for id_, name, age, school_id in STUDENTS
            ]
        )
        await session.commit()

        try:
            yield session
        finally:
            await session.close()
    await engine.dispose()


@pytest.fixture
def settings() -> DataTablesSettings:
    """Settings independent from the environment."""
    return DataTablesSettings(case_insensitive=True, default_page_size=10, debug=False)


def make_request(
    columns: List[str],
    start: int = 0,
    length: int = 10,
    search: str = "",
    regex: bool = False,
    order: Optional[List[tuple]] = None,
    column_search: Optional[Dict[str, Any]] = None,
    draw: int = 1,
    flags: Optional[Dict[str, Dict[str, bool]]] = None,
) -> DataTablesRequest:
    """
    Build a request the way the widget sends it.

    ``column_search`` maps a column data path to a keyword, or to a
    ``(keyword, regex)`` pair. ``order`` is a list of ``(index, dir)`` pairs.
    ``flags`` maps a data path to overrides such as ``{"searchable": False}``.
    """
    column_search = column_search or {}
    flags = flags or {}
    payload_columns = []
    for data in columns:
        term = column_search.get(data, "")
        term_regex = False
        if isinstance(term, tuple):
            term, term_regex = term
        payload_columns.append(
            {
                "data": data,
                "name": "",
                "searchable": flags.get(data, {}).get("searchable", True),
                "orderable": flags.get(data, {}).get("orderable", True),
                "search": {"value": term, "regex": term_regex},
            }
        )
    return DataTablesRequest.model_validate(
        {
            "draw": draw,
            "start": start,
            "length": length,
            "search": {"value": search, "regex": regex},
            "columns": payload_columns,
            "order": [{"column": index, "dir": direction} for index, direction in order or []],
        }
    )
