"""Last-resort handling of exceptions that escape the handlers.

The chat that triggered the update gets a short apology; the full traceback
goes to the log and, when enabled, to the configured admins.
"""

import contextlib
import logging
import traceback

from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from aiogram.types import CallbackQuery, ErrorEvent, Message, Update
from aiogram.utils.formatting import Bold, Pre, Text, as_list

from botovis_telegram.config import CONFIG

LOGGER = logging.getLogger(__name__)

USER_ERROR_TEXT = '❌ Something went wrong. Please try again later.'
TRACEBACK_LIMIT = 3000


def _origin(update: Update | None) -> Message | CallbackQuery | None:
    if update is None:
        return None
    return update.message or update.callback_query


def _chat_label(origin: Message | CallbackQuery | None) -> str:
    if isinstance(origin, CallbackQuery):
        origin = origin.message
    chat = getattr(origin, 'chat', None)
    return str(chat.id) if chat is not None else 'Unknown'


def _short_traceback(error: BaseException) -> str:
    tb = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
    if len(tb) <= TRACEBACK_LIMIT:
        return tb
    # Keep the entry point and the raising frame
    return f'{tb[:1500]}\n...\n{tb[-1000:]}'


async def _apologize(origin: Message | CallbackQuery) -> None:
    try:
        if isinstance(origin, Message):
            await origin.answer(USER_ERROR_TEXT, parse_mode=None)
        else:
            await origin.answer('❌ Something went wrong', show_alert=True)
    except TelegramAPIError as e:
        LOGGER.warning('Could not tell the chat about the error: %s', e)


async def _report_to_admins(
    bot: Bot, error: BaseException, origin: Message | CallbackQuery | None
) -> None:
    report = as_list(
        Text('🚨 ', Bold('Botovis Telegram error')),
        Text(Bold('Chat: '), _chat_label(origin)),
        Text(Bold('Type: '), type(error).__name__),
        Text(Bold('Error: '), str(error)[:300]),
        Pre(_short_traceback(error)),
    )
    for admin_id in CONFIG.admin_ids:
        # One unreachable admin must not stop the others
        with contextlib.suppress(TelegramAPIError):
            await bot.send_message(admin_id, **report.as_kwargs())


async def global_error_handler(event: ErrorEvent, bot: Bot) -> bool:
    """Log an unhandled exception and notify the chat and, optionally, admins."""
    error = event.exception
    LOGGER.exception('Unhandled %s: %s', type(error).__name__, error, exc_info=error)

    origin = _origin(event.update)
    if origin is not None:
        await _apologize(origin)

    if CONFIG.notify_admins_on_error and CONFIG.admin_ids:
        await _report_to_admins(bot, error, origin)

    return True


def setup_error_handler(dp: Dispatcher) -> None:
    """Register the global error handler."""
    dp.errors.register(global_error_handler)
