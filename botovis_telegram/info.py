"""
Info handlers for commands serving information
"""

import logging

from aiogram import Bot, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from botovis_telegram.links import LinkStore
from botovis_telegram.response_handler import send_formatted_message

LOGGER = logging.getLogger(__name__)

ONBOARDING_TEXT = (
    '👋 Welcome to the Botovis Telegram Bot!\n\n'
    'To use this bot you first need to link your account:\n\n'
    '1. Open your application panel\n'
    '2. Get a connect code in the "Connect Telegram" section\n'
    '3. Send /connect YOUR_CODE here\n\n'
    'Example: /connect 482951'
)

HELP_TEXT = """🤖 **Botovis Telegram Bot**

**Commands:**
/connect CODE - link your account
/disconnect - remove the link
/tables - list accessible tables
/reset - reset the conversation
/status - show link status
/help - show this message

**Usage:**
Just ask your question in plain language.

Examples:
- How many active customers are there?
- Top 5 best-selling products this month
- Update the iPhone price to 52999"""

info_router = Router(name=__name__)


@info_router.message(CommandStart())
async def start_handler(message: Message, link_store: LinkStore) -> None:
    """Greet linked users, explain linking to everyone else."""
    account = await link_store.account_for_chat(message.chat.id)
    if account is None:
        await message.answer(ONBOARDING_TEXT, parse_mode=None)
        return

    await message.answer(
        f'👋 Hello {account.display_name}! You can start asking Botovis questions.\n\n'
        '/help - show commands\n'
        '/tables - list accessible tables',
        parse_mode=None,
    )


@info_router.message(Command('help'))
async def help_handler(message: Message, bot: Bot) -> None:
    """Display available commands and usage examples."""
    await send_formatted_message(bot, message.chat.id, HELP_TEXT)


@info_router.message(Command('status'))
async def status_handler(message: Message, link_store: LinkStore) -> None:
    """Show which account, if any, the chat is linked to."""
    chat_id = message.chat.id
    account = await link_store.account_for_chat(chat_id)
    if account is None:
        await message.answer(
            f'❌ Not linked\n\n🆔 Chat ID: {chat_id}\n\n'
            'Send /connect YOUR_CODE to link your account.',
            parse_mode=None,
        )
        return

    lines = ['✅ Linked', '', f'👤 {account.display_name}']
    if account.email:
        lines.append(f'📧 {account.email}')
    if account.role:
        lines.append(f'🔑 Role: {account.role}')
    lines.append(f'🆔 Chat ID: {chat_id}')
    await message.answer('\n'.join(lines), parse_mode=None)
