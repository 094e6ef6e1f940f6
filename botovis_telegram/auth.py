import logging

from aiogram import Router
from aiogram.filters.command import Command, CommandObject
from aiogram.types import Message

from botovis_telegram.links import LinkStore

LOGGER = logging.getLogger(__name__)

CONNECT_USAGE = (
    '❌ Usage: /connect YOUR_CODE\n\n'
    'Example: /connect 482951\n\n'
    'You can get a code in your application panel.'
)

auth_router = Router(name=__name__)


@auth_router.message(Command('connect'))
async def connect_handler(
    message: Message, command: CommandObject, link_store: LinkStore
) -> None:
    """Link the chat to an account using a one-time connect code."""
    code = (command.args or '').strip()
    if not code:
        await message.answer(CONNECT_USAGE, parse_mode=None)
        return

    chat_id = message.chat.id
    existing = await link_store.account_for_chat(chat_id)
    if existing is not None:
        await message.answer(
            f'✅ Your account is already linked ({existing.email or existing.display_name}). '
            'Use /disconnect first.',
            parse_mode=None,
        )
        return

    account = await link_store.redeem_connect_code(code)
    if account is None:
        await message.answer(
            '❌ Invalid or expired code. Please get a new one from the panel.',
            parse_mode=None,
        )
        return

    await link_store.link_chat(chat_id, account)
    LOGGER.info('Chat %s linked to account %s', chat_id, account.id)

    lines = ['✅ Account linked successfully!', '', f'👤 {account.display_name}']
    if account.email:
        lines.append(f'📧 {account.email}')
    lines.extend(['', 'You can now start asking Botovis questions.'])
    await message.answer('\n'.join(lines), parse_mode=None)


@auth_router.message(Command('disconnect'))
async def disconnect_handler(message: Message, link_store: LinkStore) -> None:
    """Remove the chat's account link."""
    if not await link_store.unlink_chat(message.chat.id):
        await message.answer('❌ No account is linked to this chat.', parse_mode=None)
        return

    LOGGER.info('Chat %s unlinked', message.chat.id)
    await message.answer('✅ Telegram link removed.', parse_mode=None)
