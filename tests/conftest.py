"""
Pytest configuration and shared fixtures.

Key fixtures:
- repository: in-memory FakeRepository seeded with nothing
- project: a project with homeowner, roofer and project manager contacts
- fake_openai: scripted decision engine
- prompt_runner, action_service, updater: real components over the fakes

Unit tests run without Postgres or OpenAI; see tests/fakes.py.
"""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src and tests to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))
sys.path.insert(0, str(Path(__file__).parent))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from fakes import (
    COMPANY_ID,
    HOMEOWNER_PHONE,
    PM_PHONE,
    PROJECT_ID,
    ROOFER_PHONE,
    FakeOpenAI,
    FakeRepository,
)

from comms_orchestrator.actions.records import ActionRecordService
from comms_orchestrator.models.project import Contact, Project
from comms_orchestrator.pipeline.prompt_runner import PromptRunner
from comms_orchestrator.pipeline.updater import ProjectUpdater


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def contacts() -> list[Contact]:
    return [
        Contact(id='c-home', full_name='Jane Smith', role='Homeowner', phone_number=HOMEOWNER_PHONE),
        Contact(id='c-roof', full_name='Bob Builder', role='Roofer', phone_number=ROOFER_PHONE),
        Contact(id='c-pm', full_name='Pat Manager', role='ProjectManager', phone_number=PM_PHONE),
    ]


@pytest.fixture
def project(repository, contacts) -> Project:
    return repository.add_project(
        Project(
            id=PROJECT_ID,
            company_id=COMPANY_ID,
            summary='Roof replacement scheduled.',
            next_step='Confirm install date',
            address='12 Oak Street',
        ),
        contacts,
    )


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def sender():
    mock = MagicMock()
    mock.send = AsyncMock()
    return mock


@pytest.fixture
def prompt_runner(fake_openai, repository) -> PromptRunner:
    return PromptRunner(fake_openai, repository)


@pytest.fixture
def action_service(repository, sender) -> ActionRecordService:
    return ActionRecordService(repository, sender)


@pytest.fixture
def updater(prompt_runner, repository, action_service) -> ProjectUpdater:
    return ProjectUpdater(prompt_runner, repository, action_service)


@pytest.fixture
def openai_api_key() -> str:
    """Get OpenAI API key from environment."""
    key = os.getenv('OPENAI_API_KEY')
    if not key:
        pytest.skip('OPENAI_API_KEY not set')
    return key
