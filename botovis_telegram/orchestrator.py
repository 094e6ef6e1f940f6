"""Contract between the bot and the agent that answers questions.

The bot never talks to a database or a language model itself. It forwards
each chat message to an ``AgentOrchestrator`` together with the linked
``Account`` and renders whatever events come back.
"""

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any, Protocol

from tg_markup import PendingAction

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    """Application user a Telegram chat is linked to."""

    id: str
    name: str = ''
    email: str = ''
    role: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or f'#{self.id}'


class EventType(StrEnum):
    STEP = 'step'
    MESSAGE = 'message'
    CONFIRMATION = 'confirmation'
    ERROR = 'error'


@dataclass(frozen=True)
class StreamingEvent:
    """One event of an agent turn.

    Payload shapes by type:
        step: ``thought``, ``action``, ``action_params``
        message: ``content``
        confirmation: ``description``, ``action``, ``params``
        error: ``message``
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentResponse:
    message: str
    pending_action: PendingAction | None = None


class AgentError(Exception):
    """Agent failure whose message can be shown to the user."""


class AgentOrchestrator(Protocol):
    def stream(
        self, conversation_id: str, text: str, account: Account
    ) -> AsyncIterator[StreamingEvent]: ...

    async def confirm(self, conversation_id: str, account: Account) -> AgentResponse: ...

    async def reject(self, conversation_id: str, account: Account) -> AgentResponse: ...

    async def reset(self, conversation_id: str) -> None: ...

    async def accessible_tables(self, account: Account) -> list[str]: ...


@dataclass
class AgentTurn:
    """Everything one agent turn produced, collected from its event stream."""

    steps: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    confirmation: dict[str, Any] | None = None
    error: str | None = None

    def confirmation_response(self) -> AgentResponse | None:
        if self.confirmation is None:
            return None
        return AgentResponse(
            message=self.confirmation.get('description') or '',
            pending_action={
                'action': self.confirmation.get('action') or '',
                'params': self.confirmation.get('params') or {},
            },
        )


async def collect_turn(events: AsyncIterable[StreamingEvent]) -> AgentTurn:
    """Drain an event stream into an ``AgentTurn``.

    Later message, confirmation and error events replace earlier ones;
    unknown event types are ignored.
    """
    turn = AgentTurn()
    async for event in events:
        match event.type:
            case EventType.STEP:
                turn.steps.append(event.data)
            case EventType.MESSAGE:
                turn.message = event.data.get('content') or ''
            case EventType.CONFIRMATION:
                turn.confirmation = event.data
            case EventType.ERROR:
                turn.error = event.data.get('message') or 'Unknown error'
            case _:
                LOGGER.debug('Ignoring agent event of type %s', event.type)
    return turn
