import contextlib
import logging

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.filters.callback_data import CallbackData
from aiogram.filters.command import Command
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.utils.chat_action import ChatActionSender
from aiogram.utils.keyboard import InlineKeyboardBuilder

from botovis_telegram.config import CONFIG
from botovis_telegram.orchestrator import (
    Account,
    AgentError,
    AgentOrchestrator,
    AgentResponse,
    AgentTurn,
    collect_turn,
)
from botovis_telegram.response_handler import (
    send_formatted_message,
    send_plain_message,
    send_step,
)
from botovis_telegram.utils import conversation_id_for
from tg_markup import FormattedMessage, format_confirmation

LOGGER = logging.getLogger(__name__)

INVALID_ACTION = 'Invalid action.'

agent_commands_router = Router(name=f'{__name__}.commands')
agent_router = Router(name=f'{__name__}.messaging')


# NOTE: Callback should fit in 64 chars
class ConfirmCallback(CallbackData, prefix='confirm'):
    conversation_id: str


class RejectCallback(CallbackData, prefix='reject'):
    conversation_id: str


def confirmation_keyboard(conversation_id: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.button(
        text='✅ Confirm',
        callback_data=ConfirmCallback(conversation_id=conversation_id).pack(),
    )
    builder.button(
        text='❌ Cancel',
        callback_data=RejectCallback(conversation_id=conversation_id).pack(),
    )
    builder.adjust(2)
    return builder.as_markup()


async def send_confirmation(
    bot: Bot, chat_id: int, response: AgentResponse, conversation_id: str
) -> None:
    """Send a write-operation prompt with confirm and cancel buttons."""
    keyboard = confirmation_keyboard(conversation_id)
    formatted = FormattedMessage(
        format_confirmation(response.message, response.pending_action, CONFIG.markup_mode),
        CONFIG.markup_mode,
    )
    try:
        await bot.send_message(
            chat_id, formatted.text, parse_mode=formatted.parse_mode, reply_markup=keyboard
        )
    except TelegramBadRequest as e:
        LOGGER.warning('Failed to send confirmation prompt: %s', e)
        await send_plain_message(
            bot, chat_id, f'⚠️ Write operation\n\n{response.message}', reply_markup=keyboard
        )


async def deliver_turn(bot: Bot, chat_id: int, turn: AgentTurn, conversation_id: str) -> None:
    """Send what an agent turn produced.

    Steps go first (when enabled), then exactly one of: confirmation prompt,
    error, final message.
    """
    if CONFIG.show_steps:
        for step in turn.steps:
            await send_step(bot, chat_id, step)

    confirmation = turn.confirmation_response()
    if confirmation is not None:
        await send_confirmation(bot, chat_id, confirmation, conversation_id)
    elif turn.error:
        await send_plain_message(bot, chat_id, f'❌ {turn.error}')
    elif turn.message:
        await send_formatted_message(bot, chat_id, turn.message)


@agent_commands_router.message(Command('tables'), flags={'require_account': True})
async def tables_handler(
    message: Message, account: Account, orchestrator: AgentOrchestrator
) -> None:
    """List tables the linked account may query."""
    tables = await orchestrator.accessible_tables(account)
    if not tables or tables == ['*']:
        tables = CONFIG.known_tables

    if not tables:
        await message.answer('📋 No accessible tables found.', parse_mode=None)
        return

    listing = '\n'.join(f'• {table}' for table in tables)
    await message.answer(f'📋 Accessible tables:\n\n{listing}', parse_mode=None)


@agent_commands_router.message(
    Command('reset'), flags={'require_account': True, 'agent_turn': True}
)
async def reset_handler(message: Message, orchestrator: AgentOrchestrator) -> None:
    """Start a new conversation with the agent."""
    await orchestrator.reset(conversation_id_for(message.chat.id))
    await message.answer(
        '🔄 Conversation reset. You can ask a new question.', parse_mode=None
    )


@agent_commands_router.message(F.text.startswith('/'))
async def unknown_command_handler(message: Message) -> None:
    await message.answer(
        'Unknown command. Send /help to see the available commands.', parse_mode=None
    )


@agent_router.message(F.text, flags={'require_account': True, 'agent_turn': True})
async def message_handler(
    message: Message, bot: Bot, account: Account, orchestrator: AgentOrchestrator
) -> None:
    """Run one agent turn for a chat message."""
    if not message.text:
        return

    chat_id = message.chat.id
    conversation_id = conversation_id_for(chat_id)

    try:
        async with ChatActionSender.typing(bot=bot, chat_id=chat_id):
            turn = await collect_turn(
                orchestrator.stream(conversation_id, message.text, account)
            )
    except AgentError as e:
        LOGGER.error(
            'Agent turn failed: chat_id=%s, account=%s, error=%s', chat_id, account.id, e
        )
        await send_plain_message(bot, chat_id, f'❌ An error occurred: {e}')
        return

    await deliver_turn(bot, chat_id, turn, conversation_id)


def _callback_chat_id(callback: CallbackQuery, conversation_id: str) -> int | None:
    """Chat of a confirmation callback, if the conversation belongs to it."""
    if callback.message is None:
        return None
    chat_id = callback.message.chat.id
    if conversation_id != conversation_id_for(chat_id):
        return None
    return chat_id


async def _edit_prompt(callback: CallbackQuery, text: str) -> None:
    """Replace the confirmation prompt, dropping its buttons."""
    if not isinstance(callback.message, Message):
        return
    # Editing fails for old or already edited messages
    with contextlib.suppress(TelegramAPIError):
        await callback.message.edit_text(text, parse_mode=None)


@agent_router.callback_query(
    ConfirmCallback.filter(), flags={'require_account': True, 'agent_turn': True}
)
async def confirm_handler(
    callback: CallbackQuery,
    callback_data: ConfirmCallback,
    bot: Bot,
    account: Account,
    orchestrator: AgentOrchestrator,
) -> None:
    """Execute the pending write operation."""
    chat_id = _callback_chat_id(callback, callback_data.conversation_id)
    if chat_id is None:
        await callback.answer(INVALID_ACTION)
        return

    await callback.answer('✅ Confirmed, processing...')
    try:
        async with ChatActionSender.typing(bot=bot, chat_id=chat_id):
            response = await orchestrator.confirm(callback_data.conversation_id, account)
    except AgentError as e:
        LOGGER.error('Confirm failed: chat_id=%s, error=%s', chat_id, e)
        await send_plain_message(bot, chat_id, f'❌ Error: {e}')
        return

    await _edit_prompt(callback, '✅ Operation confirmed.')
    await send_formatted_message(bot, chat_id, response.message)


@agent_router.callback_query(
    RejectCallback.filter(), flags={'require_account': True, 'agent_turn': True}
)
async def reject_handler(
    callback: CallbackQuery,
    callback_data: RejectCallback,
    bot: Bot,
    account: Account,
    orchestrator: AgentOrchestrator,
) -> None:
    """Discard the pending write operation."""
    chat_id = _callback_chat_id(callback, callback_data.conversation_id)
    if chat_id is None:
        await callback.answer(INVALID_ACTION)
        return

    await callback.answer('❌ Cancelled.')
    try:
        await orchestrator.reject(callback_data.conversation_id, account)
    except AgentError as e:
        LOGGER.error('Reject failed: chat_id=%s, error=%s', chat_id, e)
        await send_plain_message(bot, chat_id, f'❌ Error: {e}')
        return

    await _edit_prompt(callback, '❌ Operation cancelled.')


@agent_router.callback_query()
async def invalid_callback_handler(callback: CallbackQuery) -> None:
    await callback.answer(INVALID_ACTION)
