"""
Mock Identity Provider

In-memory user directory for development and tests.
Seeded with a handful of canteen users; more can be registered at runtime.
"""

import asyncio
import logging
from typing import Optional

from canteen_gate.schemas import CandidateUser
from canteen_gate.services.identity.base import BaseIdentityProvider

logger = logging.getLogger(__name__)


DEMO_USERS = [
    CandidateUser(
        id="1", name="Canteen Admin", role="admin",
    ),
    CandidateUser(
        id="2", name="Arun Kumar", role="student",
        register_number="711523CSE001", department="CSE",
        current_study_year=2, joining_year=2023, passing_out_year=2027,
    ),
    CandidateUser(
        id="3", name="Divya R", role="student",
        register_number="711522ECE014", department="ECE",
        current_study_year=3, joining_year=2022, passing_out_year=2026,
    ),
    CandidateUser(
        id="4", name="Prof. Meena", role="staff", staff_id="KIT-STF-042",
    ),
    CandidateUser(
        id="5", name="Main Counter", role="canteen_owner",
    ),
]


class MockIdentityProvider(BaseIdentityProvider):
    """
    Mock identity provider.

    Attributes:
        latency: Simulated lookup latency in seconds
    """

    def __init__(self, seed_demo_users: bool = True, latency: float = 0.0):
        self.latency = latency
        self._users: dict[str, CandidateUser] = {}
        if seed_demo_users:
            for user in DEMO_USERS:
                self.register(user)
        logger.info(f"MockIdentityProvider initialized ({len(self._users)} users)")

    @property
    def provider_name(self) -> str:
        return "mock"

    def register(self, user: CandidateUser) -> CandidateUser:
        """Add or replace a user in the directory."""
        if not user.id:
            raise ValueError("Mock users need an id")
        user = self.apply_admin_flag(user)
        self._users[user.id] = user
        return user

    def remove(self, user_id: str) -> None:
        self._users.pop(str(user_id), None)

    async def get_user(self, user_id: str) -> Optional[CandidateUser]:
        if self.latency:
            await asyncio.sleep(self.latency)
        return self._users.get(str(user_id))

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
