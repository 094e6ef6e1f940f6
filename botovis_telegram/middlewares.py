import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import cast
from weakref import WeakValueDictionary

from aiogram import BaseMiddleware, Dispatcher
from aiogram.dispatcher.flags import get_flag
from aiogram.types import CallbackQuery, Chat, Message
from aiogram.types.base import TelegramObject

from botovis_telegram.config import CONFIG
from botovis_telegram.links import LinkStore

LOGGER = logging.getLogger(__name__)


class AccountMiddleware(BaseMiddleware):
    """Middleware that resolves the account linked to the chat.

    Only runs for handlers flagged ``require_account``. If the chat is linked,
    injects ``account`` into handler data; otherwise answers with the guest
    message and blocks handler execution.

    Requires link_store in dispatcher's workflow_data.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, object]], Awaitable[object]],
        event: TelegramObject,
        data: dict[str, object],
    ) -> object | None:
        if not get_flag(data, 'require_account'):
            return await handler(event, data)

        if not isinstance(event, (Message, CallbackQuery)):
            raise TypeError(
                f'require_account flag on unsupported event type: {type(event).__name__}'
            )

        chat = cast(Chat | None, data.get('event_chat'))
        if chat is None:
            raise ValueError('require_account: event has no chat')

        link_store = cast(LinkStore, data['link_store'])
        account = await link_store.account_for_chat(chat.id)
        if account is None:
            if isinstance(event, CallbackQuery):
                await event.answer('User not found.')
            else:
                await event.answer(CONFIG.guest_message, parse_mode=None)
            return None

        data['account'] = account
        return await handler(event, data)


class ChatLockMiddleware(BaseMiddleware):
    """Middleware that runs at most one agent turn per chat at a time.

    Handlers flagged ``agent_turn`` wait for the chat's lock; other chats are
    not blocked. A single instance must serve both messages and callbacks.
    """

    def __init__(self) -> None:
        # A lock lives as long as some handler holds or awaits it
        self._locks: WeakValueDictionary[int, asyncio.Lock] = WeakValueDictionary()

    def lock_for(self, chat_id: int) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, object]], Awaitable[object]],
        event: TelegramObject,
        data: dict[str, object],
    ) -> object:
        chat = cast(Chat | None, data.get('event_chat'))
        if not get_flag(data, 'agent_turn') or chat is None:
            return await handler(event, data)

        lock = self.lock_for(chat.id)
        if lock.locked():
            LOGGER.debug('Chat %s busy, waiting for the running agent turn', chat.id)
        async with lock:
            return await handler(event, data)


def setup_middlewares(dp: Dispatcher) -> None:
    """Register all middlewares.

    Requires link_store in dispatcher's workflow_data:
        dp = Dispatcher(orchestrator=orchestrator, link_store=link_store)
    """
    dp.message.middleware(AccountMiddleware())
    dp.callback_query.middleware(AccountMiddleware())

    chat_lock = ChatLockMiddleware()
    dp.message.middleware(chat_lock)
    dp.callback_query.middleware(chat_lock)
