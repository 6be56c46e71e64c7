"""
Pytest configuration and fixtures for club management tests
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.club.context import ClubContext
from app.club.directory import ClubDirectory
from app.club.family import FamilyService
from app.config import ClubSettings
from database import MemoryDocumentStore

CLUB_ID = "club1"
TEAM_A = "t1"     # coach, p1(트레이너), kid, p2
TEAM_B = "t2"     # coach, p3
DAY = "2026-03-14"


def make_user(user_id, role="user", **fields):
    data = {
        "email": f"{user_id}@example.com",
        "username": user_id,
        "first_name": user_id,
        "last_name": "",
        "role": role,
        "account_type": "normal",
        "is_sub_account": False,
        "parent_ids": [],
        "child_ids": [],
        "club_ids": [CLUB_ID],
        "team_ids": [],
    }
    data.update(fields)
    return data


def seed_data():
    """기본 클럽 / 팀 / 사용자"""
    return {
        "users": {
            "p1": make_user("p1", "parent", team_ids=[TEAM_A]),
            "p2": make_user("p2", "parent", team_ids=[TEAM_A]),
            "p3": make_user("p3", "parent", team_ids=[TEAM_B]),
            "p4": make_user("p4", "parent", club_ids=[]),
            "coach": make_user("coach", "trainer", username="Coach Kim", team_ids=[TEAM_A, TEAM_B]),
            "admin": make_user("admin", "admin", club_ids=[]),
            "kid": make_user("kid", team_ids=[TEAM_A]),
        },
        "clubs": {
            CLUB_ID: {
                "name": "Seoul Fencing Club",
                "members": ["p1", "p2", "p3", "coach", "kid"],
                "trainers": ["coach"],
                "assistants": [],
                "teams": [
                    {"id": TEAM_A, "name": "U12", "trainers": ["coach", "p1"], "assistants": [], "members": ["kid", "p2"]},
                    {"id": TEAM_B, "name": "U14", "trainers": ["coach"], "assistants": [], "members": ["p3"]},
                ],
            }
        },
    }


@pytest.fixture
def settings():
    return ClubSettings(
        store_backend="memory",
        test_mode=True,
        autosave_debounce_seconds=0.05,
        max_parents_per_child=3,
    )


@pytest.fixture
def store():
    return MemoryDocumentStore(seed_data())


@pytest.fixture
def directory(store):
    return ClubDirectory(store)


@pytest.fixture
def family(store, directory, settings):
    return FamilyService(store, directory, settings)


@pytest.fixture
def context(store, settings):
    return ClubContext(store, settings)
