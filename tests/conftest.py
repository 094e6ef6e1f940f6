"""Shared fixtures for bot tests."""

from collections.abc import AsyncIterator, Callable
import contextlib
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Config is read at import time
os.environ.setdefault('BOTOVIS_TELEGRAM_BOT_TOKEN', '123456:TEST-TOKEN')
os.environ.setdefault('BOTOVIS_TELEGRAM_WEBHOOK_HOST', 'bot.example.com')

from botovis_telegram.orchestrator import Account, AgentResponse, StreamingEvent  # noqa: E402

CHAT_ID = 4242


@pytest.fixture
def account() -> Account:
    return Account(id='7', name='Ada Lovelace', email='ada@example.com', role='admin')


@pytest.fixture
def bot() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def message() -> MagicMock:
    """Incoming text message in CHAT_ID."""
    msg = MagicMock()
    msg.chat = SimpleNamespace(id=CHAT_ID)
    msg.text = 'How many customers?'
    msg.answer = AsyncMock()
    return msg


def _orchestrator(*events: StreamingEvent) -> MagicMock:
    orchestrator = MagicMock()

    async def stream(conversation_id: str, text: str, account: Account) -> AsyncIterator:
        for event in events:
            yield event

    orchestrator.stream = MagicMock(side_effect=stream)
    orchestrator.confirm = AsyncMock(return_value=AgentResponse('Price updated.'))
    orchestrator.reject = AsyncMock(return_value=AgentResponse('Cancelled.'))
    orchestrator.reset = AsyncMock()
    orchestrator.accessible_tables = AsyncMock(return_value=['products', 'orders'])
    return orchestrator


@pytest.fixture
def make_orchestrator() -> Callable[..., MagicMock]:
    """Factory for orchestrators whose stream yields the given events."""
    return _orchestrator


@pytest.fixture
def no_typing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace the typing indicator with a no-op context manager."""
    sender = MagicMock()
    sender.typing.side_effect = lambda **kwargs: contextlib.nullcontext()
    monkeypatch.setattr('botovis_telegram.agent.ChatActionSender', sender)
