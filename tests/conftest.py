"""
Core pytest configuration and fixtures for LexIA testing.

This module provides shared test fixtures, configuration, and utilities
used by both the unit and the integration suites.
"""

from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import MagicMock

import pytest
from lexia.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, Credential

# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat history, one minute apart."""
    start = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    contents = [
        (USER_ROLE, "¿Qué es un contrato?"),
        (
            ASSISTANT_ROLE,
            "Un contrato es un acuerdo de voluntades (art. 1254 del Código Civil).",
        ),
        (USER_ROLE, "¿Y cuándo es nulo?"),
        (ASSISTANT_ROLE, "Cuando falta alguno de los requisitos del art. 1261 CC."),
    ]
    return [
        ChatMessage(role=role, content=content, created_at=start + timedelta(minutes=i))
        for i, (role, content) in enumerate(contents)
    ]


@pytest.fixture
def openai_credential() -> Credential:
    return Credential(api_key="sk-test-123", provider="openai")


@pytest.fixture
def gemini_credential() -> Credential:
    return Credential(api_key="AIza-test-456", provider="gemini")


# ===== MOCK FIXTURES =====


@pytest.fixture
def mock_provider():
    """Mock LLM provider answering every prompt with the same reply."""
    mock = MagicMock()
    mock.complete.return_value = "Respuesta del asistente"
    return mock


@pytest.fixture
def mock_auth():
    """Mock auth provider for testing."""
    mock = MagicMock()
    mock.get_current_user_id.return_value = "test_user"
    mock.sign_in.return_value = {"user_id": "test_user", "email": "ana@example.com"}
    return mock


# ===== APP FIXTURES =====


@pytest.fixture
def settings():
    """Settings that never touch external backends."""
    from lexia.config import Settings

    return Settings(store_backend="memory", auth_backend="single", _env_file=None)


@pytest.fixture
def test_app(settings):
    """
    Provides a Lexia app instance with simple, predictable components.

    This fixture is ideal for integration tests where we need a running app
    but want to avoid external dependencies like hosted databases or actual
    LLM APIs.
    """
    from lexia import Lexia
    from lexia.auth import SingleUser
    from lexia.llm import Echo
    from lexia.store import InMemory

    app = Lexia(
        providers={"openai": Echo(), "gemini": Echo()},
        store=InMemory(),
        auth=SingleUser(),
        settings=settings,
    )
    return app


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
