"""Shared fixtures and utilities for tests."""

import itertools
import os
from typing import Optional

import pytest
from sqlalchemy.pool import StaticPool

# Settings are read on first use; set the environment before anything imports them
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JSON_LOGS", "false")

from api.services import jobs as job_service  # noqa: E402
from api.services import candidates as candidate_service  # noqa: E402
from database.engine import Database  # noqa: E402
from database.models import Candidate, Company, Job, JobCandidate, User, UserRole  # noqa: E402


@pytest.fixture
async def db():
    """In-memory SQLite database with every table created."""
    database = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await database.open()
    await database.create_all()
    yield database
    await database.close()


class Seed:
    """Builds tenants, users, jobs, candidates and applications for tests."""

    def __init__(self, database: Database):
        self.db = database
        self._counter = itertools.count(1)

    async def company(self, name: str = "Acme") -> Company:
        async with self.db.unit_of_work() as session:
            company = Company(name=name)
            session.add(company)
            await session.flush()
        return company

    async def user(
        self,
        company: Company,
        role: UserRole = UserRole.ADMIN,
        name: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        n = next(self._counter)
        async with self.db.unit_of_work() as session:
            user = User(
                company_id=company.id,
                name=name or f"User {n}",
                email=f"user{n}@example.com",
                role=role,
                is_active=is_active,
            )
            session.add(user)
            await session.flush()
        return user

    async def job(
        self,
        company: Company,
        title: str = "Backend Engineer",
        department: str = "Engineering",
        location: Optional[str] = "Remote",
        recruiter: Optional[User] = None,
        auto_rejection_rules=None,
    ) -> Job:
        return await job_service.create_job(
            self.db,
            company_id=company.id,
            title=title,
            department=department,
            location=location,
            assigned_recruiter_id=recruiter.id if recruiter else None,
            auto_rejection_rules=auto_rejection_rules,
        )

    async def candidate(
        self,
        company: Company,
        name: Optional[str] = None,
        source: str = "LinkedIn",
        **fields,
    ) -> Candidate:
        n = next(self._counter)
        return await candidate_service.create_candidate(
            self.db,
            company_id=company.id,
            name=name or f"Candidate {n}",
            email=f"candidate{n}@example.com",
            location=fields.pop("location", "Berlin"),
            source=source,
            **fields,
        )

    async def application(
        self,
        job: Job,
        candidate: Candidate,
        stage_name: Optional[str] = None,
        added_by: Optional[User] = None,
    ) -> JobCandidate:
        stage_id = None
        if stage_name is not None:
            stage_id = next(s.id for s in job.stages if s.name == stage_name)
        return await candidate_service.add_candidate_to_job(
            self.db,
            candidate.id,
            job.id,
            stage_id=stage_id,
            added_by=added_by.id if added_by else None,
        )


@pytest.fixture
def seed(db):
    return Seed(db)

