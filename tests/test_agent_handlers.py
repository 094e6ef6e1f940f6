"""Tests for agent turns, confirmation callbacks and agent commands."""

from collections.abc import Callable
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import Message
import pytest

from botovis_telegram.agent import (
    INVALID_ACTION,
    ConfirmCallback,
    RejectCallback,
    confirm_handler,
    confirmation_keyboard,
    invalid_callback_handler,
    message_handler,
    reject_handler,
    reset_handler,
    tables_handler,
    unknown_command_handler,
)
from botovis_telegram.config import CONFIG
from botovis_telegram.orchestrator import Account, AgentError, EventType, StreamingEvent

STEP = StreamingEvent(
    EventType.STEP, {'thought': 'Counting', 'action': 'count', 'action_params': {}}
)
CONFIRMATION = StreamingEvent(
    EventType.CONFIRMATION,
    {'description': 'Update price?', 'action': 'update', 'params': {'table': 'products'}},
)


def _sent_texts(bot: AsyncMock) -> list[str]:
    return [c.args[1] for c in bot.send_message.await_args_list]


# ============================================================================
# Keyboard
# ============================================================================


def test_confirmation_keyboard_callback_data() -> None:
    keyboard = confirmation_keyboard('telegram_42')
    (confirm, reject), = keyboard.inline_keyboard
    assert confirm.callback_data == 'confirm:telegram_42'
    assert reject.callback_data == 'reject:telegram_42'


def test_callback_data_round_trip() -> None:
    assert ConfirmCallback.unpack('confirm:telegram_-100123').conversation_id == (
        'telegram_-100123'
    )


# ============================================================================
# Agent turns
# ============================================================================


@pytest.mark.asyncio
async def test_final_message_is_formatted(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    orchestrator = make_orchestrator(
        STEP, StreamingEvent(EventType.MESSAGE, {'content': 'There are **42** customers.'})
    )

    await message_handler(message, bot, account, orchestrator)

    orchestrator.stream.assert_called_once_with(
        f'telegram_{message.chat.id}', 'How many customers?', account
    )
    bot.send_message.assert_awaited_once_with(
        message.chat.id, 'There are <b>42</b> customers.', parse_mode='HTML'
    )


@pytest.mark.asyncio
async def test_steps_are_sent_when_enabled(
    monkeypatch: pytest.MonkeyPatch,
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    monkeypatch.setattr(CONFIG, 'show_steps', True)
    orchestrator = make_orchestrator(
        STEP,
        StreamingEvent(EventType.STEP, {'thought': 'no action'}),
        StreamingEvent(EventType.MESSAGE, {'content': 'Done'}),
    )

    await message_handler(message, bot, account, orchestrator)

    assert _sent_texts(bot) == ['💭 <i>Counting</i>\n🔧 <code>count</code>', 'Done']


@pytest.mark.asyncio
async def test_confirmation_prompt_has_keyboard(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    orchestrator = make_orchestrator(
        CONFIRMATION, StreamingEvent(EventType.MESSAGE, {'content': 'ignored'})
    )

    await message_handler(message, bot, account, orchestrator)

    bot.send_message.assert_awaited_once()
    sent = bot.send_message.await_args
    assert sent.args[1] == '⚠️ <b>Write operation</b>\n\n🔧 update: products\n\nUpdate price?'
    assert sent.kwargs['parse_mode'] == 'HTML'
    (confirm, _), = sent.kwargs['reply_markup'].inline_keyboard
    assert confirm.callback_data == f'confirm:telegram_{message.chat.id}'


@pytest.mark.asyncio
async def test_rejected_confirmation_falls_back_to_plain(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    bot.send_message.side_effect = [
        TelegramBadRequest(method=MagicMock(), message='bad markup'),
        None,
    ]

    await message_handler(message, bot, account, make_orchestrator(CONFIRMATION))

    fallback = bot.send_message.await_args
    assert fallback.args[1] == '⚠️ Write operation\n\nUpdate price?'
    assert fallback.kwargs['parse_mode'] is None
    assert fallback.kwargs['reply_markup'] is not None


@pytest.mark.asyncio
async def test_error_event_is_reported(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    orchestrator = make_orchestrator(
        StreamingEvent(EventType.MESSAGE, {'content': 'partial'}),
        StreamingEvent(EventType.ERROR, {'message': 'Table not allowed'}),
    )

    await message_handler(message, bot, account, orchestrator)

    assert _sent_texts(bot) == ['❌ Table not allowed']


@pytest.mark.asyncio
async def test_agent_error_is_reported(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    orchestrator = make_orchestrator()
    orchestrator.stream.side_effect = AgentError('LLM unavailable')

    await message_handler(message, bot, account, orchestrator)

    assert _sent_texts(bot) == ['❌ An error occurred: LLM unavailable']


@pytest.mark.asyncio
async def test_empty_turn_sends_nothing(
    message: MagicMock,
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    await message_handler(message, bot, account, make_orchestrator())
    bot.send_message.assert_not_awaited()


# ============================================================================
# Confirmation callbacks
# ============================================================================


def _callback(chat_id: int) -> MagicMock:
    callback = MagicMock()
    callback.answer = AsyncMock()
    callback.message = MagicMock(spec=Message)
    callback.message.chat = SimpleNamespace(id=chat_id)
    callback.message.edit_text = AsyncMock()
    return callback


@pytest.mark.asyncio
async def test_confirm_executes_and_edits_prompt(
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    callback = _callback(42)
    orchestrator = make_orchestrator()

    await confirm_handler(
        callback, ConfirmCallback(conversation_id='telegram_42'), bot, account, orchestrator
    )

    orchestrator.confirm.assert_awaited_once_with('telegram_42', account)
    callback.message.edit_text.assert_awaited_once_with('✅ Operation confirmed.', parse_mode=None)
    bot.send_message.assert_awaited_once_with(42, 'Price updated.', parse_mode='HTML')


@pytest.mark.asyncio
async def test_confirm_survives_failed_edit(
    bot: AsyncMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
    no_typing: None,
) -> None:
    callback = _callback(42)
    callback.message.edit_text.side_effect = TelegramBadRequest(
        method=MagicMock(), message='message is not modified'
    )

    await confirm_handler(
        callback,
        ConfirmCallback(conversation_id='telegram_42'),
        bot,
        account,
        make_orchestrator(),
    )

    bot.send_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_reject_cancels_and_edits_prompt(
    bot: AsyncMock, account: Account, make_orchestrator: Callable[..., MagicMock]
) -> None:
    callback = _callback(42)
    orchestrator = make_orchestrator()

    await reject_handler(
        callback, RejectCallback(conversation_id='telegram_42'), bot, account, orchestrator
    )

    orchestrator.reject.assert_awaited_once_with('telegram_42', account)
    callback.answer.assert_awaited_once_with('❌ Cancelled.')
    callback.message.edit_text.assert_awaited_once_with('❌ Operation cancelled.', parse_mode=None)
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize('handler', [confirm_handler, reject_handler])
async def test_foreign_conversation_is_refused(
    handler: Callable, bot: AsyncMock, account: Account, make_orchestrator: Callable
) -> None:
    """A chat may only confirm or reject its own conversation."""
    callback = _callback(42)
    orchestrator = make_orchestrator()
    data_class = ConfirmCallback if handler is confirm_handler else RejectCallback

    await handler(
        callback, data_class(conversation_id='telegram_99'), bot, account, orchestrator
    )

    callback.answer.assert_awaited_once_with(INVALID_ACTION)
    orchestrator.confirm.assert_not_awaited()
    orchestrator.reject.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_callback_is_refused() -> None:
    callback = _callback(42)
    await invalid_callback_handler(callback)
    callback.answer.assert_awaited_once_with(INVALID_ACTION)


# ============================================================================
# Agent commands
# ============================================================================


@pytest.mark.asyncio
async def test_tables_lists_accessible_tables(
    message: MagicMock, account: Account, make_orchestrator: Callable[..., MagicMock]
) -> None:
    await tables_handler(message, account, make_orchestrator())
    message.answer.assert_awaited_once_with(
        '📋 Accessible tables:\n\n• products\n• orders', parse_mode=None
    )


@pytest.mark.asyncio
@pytest.mark.parametrize('returned', [[], ['*']])
async def test_tables_fall_back_to_known_tables(
    monkeypatch: pytest.MonkeyPatch,
    returned: list[str],
    message: MagicMock,
    account: Account,
    make_orchestrator: Callable[..., MagicMock],
) -> None:
    monkeypatch.setattr(CONFIG, 'known_tables', ['customers'])
    orchestrator = make_orchestrator()
    orchestrator.accessible_tables.return_value = returned

    await tables_handler(message, account, orchestrator)

    message.answer.assert_awaited_once_with(
        '📋 Accessible tables:\n\n• customers', parse_mode=None
    )


@pytest.mark.asyncio
async def test_no_tables(
    message: MagicMock, account: Account, make_orchestrator: Callable[..., MagicMock]
) -> None:
    orchestrator = make_orchestrator()
    orchestrator.accessible_tables.return_value = []

    await tables_handler(message, account, orchestrator)

    message.answer.assert_awaited_once_with('📋 No accessible tables found.', parse_mode=None)


@pytest.mark.asyncio
async def test_reset(message: MagicMock, make_orchestrator: Callable[..., MagicMock]) -> None:
    orchestrator = make_orchestrator()
    await reset_handler(message, orchestrator)
    orchestrator.reset.assert_awaited_once_with(f'telegram_{message.chat.id}')
    message.answer.assert_awaited_once()


@pytest.mark.asyncio
async def test_unknown_command_points_to_help(message: MagicMock) -> None:
    await unknown_command_handler(message)
    assert '/help' in message.answer.await_args.args[0]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
