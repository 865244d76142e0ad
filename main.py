import logging
import random
from datetime import datetime, timezone

from fastapi import FastAPI, Depends
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base, relationship
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, select
from faker import Faker
from pydantic import BaseModel, ConfigDict

from datatables_engine import (
    ColumnDefinition,
    DataTables,
    DataTablesRequest,
    DataTablesResponse,
    SearchOverride,
    get_settings,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)

# ----------------------
# Database setup
# ----------------------
DATABASE_URL = "sqlite+aiosqlite:///./students.db"

engine = create_async_engine(DATABASE_URL, echo=False, future=True)
async_session = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    async with async_session() as session:
        yield session


# ----------------------
# Models
# ----------------------
class School(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)

    students = relationship("Student", back_populates="school")


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    email = Column(String, nullable=False, unique=True)
    enrolled_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=True)

    school = relationship(School, back_populates="students")


class StudentSchema(BaseModel):
    # relation columns come through under their dotted data path
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    age: int
    email: str
    enrolled_at: str


STUDENT_COLUMNS = [
    ColumnDefinition(name="id", title="#", searchable=False),
    ColumnDefinition(name="name"),
    ColumnDefinition(name="age", search_override=SearchOverride(strategy="between", parameters=("-",))),
    ColumnDefinition(name="email", title="E-mail"),
    ColumnDefinition(name="enrolled_at", title="Enrolled"),
    ColumnDefinition(name="school.name", title="School"),
]

# ----------------------
# FastAPI app
# ----------------------
app = FastAPI()
faker = Faker()


# ----------------------
# Create tables on startup
# ----------------------
@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


SCHOOL_NAMES = ["North High", "South Academy", "East College", "West Institute"]


# ----------------------
# Insert 1000 random students
# ----------------------
@app.get("/insert_students")
async def insert_students():
    async with async_session() as session:
        existing = await session.execute(select(School))
        schools = list(existing.scalars().all())
        if not schools:
            schools = [School(name=name) for name in SCHOOL_NAMES]
            session.add_all(schools)
            await session.flush()
        school_ids = [school.id for school in schools] + [None]

        students = [
            Student(
                name=faker.name(),
                age=random.randint(18, 25),
                email=faker.unique.email(),
                enrolled_at=faker.date_time_this_decade(),
                school_id=random.choice(school_ids),
            )
            for _ in range(1000)
        ]
        session.add_all(students)
        await session.commit()
    return {"message": "1000 random students inserted successfully!"}


# ----------------------
# Grid endpoints
# ----------------------
@app.post("/students", response_model=DataTablesResponse[list[StudentSchema]])
async def get_students(
    datatable_request: DataTablesRequest, db: AsyncSession = Depends(get_db)
):
    stm = select(Student)
    datatable = DataTables(db, Student, stm, columns=STUDENT_COLUMNS)
    return await datatable.process(datatable_request)


@app.post("/students/export")
async def export_students(
    datatable_request: DataTablesRequest, db: AsyncSession = Depends(get_db)
):
    datatable = DataTables(db, Student, columns=STUDENT_COLUMNS)
    return await datatable.export(datatable_request)


COURSES = [
    {"code": f"CS{100 + i}", "title": faker.catch_phrase(), "credits": random.randint(1, 6)}
    for i in range(50)
]


@app.post("/courses", response_model=DataTablesResponse[list[dict]])
async def get_courses(datatable_request: DataTablesRequest):
    datatable = DataTables.from_collection(COURSES)
    return await datatable.process(datatable_request)
