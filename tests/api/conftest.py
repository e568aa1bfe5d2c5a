"""Pytest configuration for API tests"""
import pytest
from httpx import ASGITransport, AsyncClient

from commissioner.main import app
from commissioner.services.account_service import get_account_service
from commissioner.services.command_runner import get_node_manager
from commissioner.services.server_addresses import get_service_lookup
from commissioner.services.task_manager import TaskManager, get_task_manager
from commissioner.services.task_store import get_task_store
from commissioner.services.universe_service import get_universe_service

from ..fakes import FakeServiceLookup


@pytest.fixture
def task_manager(store):
    return TaskManager(store, owner="api-test")


@pytest.fixture
def service_lookup():
    return FakeServiceLookup([])


@pytest.fixture
async def client(store, accounts, universes, node_manager, task_manager, service_lookup):
    """HTTP client for API testing, wired to per-test stores and fake collaborators"""
    app.dependency_overrides[get_task_store] = lambda: store
    app.dependency_overrides[get_account_service] = lambda: accounts
    app.dependency_overrides[get_universe_service] = lambda: universes
    app.dependency_overrides[get_node_manager] = lambda: node_manager
    app.dependency_overrides[get_task_manager] = lambda: task_manager
    app.dependency_overrides[get_service_lookup] = lambda: service_lookup

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
