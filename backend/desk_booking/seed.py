"""Demo dataset loaded at startup when SEED_DEMO_DATA=1 and the database is empty."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .infrastructure.repositories import SqlAlchemyLocationRepository, SqlAlchemyUserRepository
from .models import Location, Role

logger = logging.getLogger(__name__)

DEMO_LOCATIONS = (
    ("Bengaluru", 450),
    ("Pune", 350),
    ("Hyderabad", 250),
    ("Chennai", 200),
)

# (employee_id, name, email, role, location name, team)
DEMO_USERS = (
    ("A001", "Priya Sharma", "priya.sharma@example.com", Role.ADMIN, "Bengaluru", None),
    ("E100", "Rajesh Kumar", "rajesh.kumar@example.com", Role.ASSOCIATE, "Bengaluru", 1),
    ("E2000", "Anjali Desai", "anjali.desai@example.com", Role.ASSOCIATE, "Bengaluru", 1),
    ("E2001", "Vikram Singh", "vikram.singh@example.com", Role.ASSOCIATE, "Bengaluru", 1),
    ("E101", "Sunita Patil", "sunita.patil@example.com", Role.ASSOCIATE, "Pune", 2),
    ("E102", "Deepak Rao", "deepak.rao@example.com", Role.ASSOCIATE, "Hyderabad", 3),
    ("E103", "Meena Nair", "meena.nair@example.com", Role.ASSOCIATE, "Chennai", 4),
)


async def seed_demo_data(session: AsyncSession) -> bool:
    """Returns False without writing anything when locations already exist."""
    async with session.begin():
        existing = await session.scalar(select(func.count()).select_from(Location))
        if existing:
            logger.info("demo seed skipped: %d locations already present", existing)
            return False

        location_repo = SqlAlchemyLocationRepository(session)
        user_repo = SqlAlchemyUserRepository(session)
        by_name = {}
        for name, capacity in DEMO_LOCATIONS:
            by_name[name] = await location_repo.create(name=name, capacity=capacity)
        for employee_id, name, email, role, location_name, team_id in DEMO_USERS:
            await user_repo.create(
                employee_id=employee_id,
                name=name,
                email=email,
                role=role,
                location_id=by_name[location_name].id,
                team_id=team_id,
            )
    logger.info("seeded %d locations and %d users", len(DEMO_LOCATIONS), len(DEMO_USERS))
    return True
