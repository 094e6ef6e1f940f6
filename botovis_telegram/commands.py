"""Bot command menu and webhook management.

Backs the ``--setup``, ``--remove`` and ``--info`` modes of
``python -m botovis_telegram.main``.
"""

import logging

from aiogram import Bot
from aiogram.types import BotCommand, BotCommandScopeAllPrivateChats

from botovis_telegram.config import CONFIG

LOGGER = logging.getLogger(__name__)

BOT_COMMANDS = [
    BotCommand(command='start', description='Start the bot'),
    BotCommand(command='connect', description='Link your account'),
    BotCommand(command='disconnect', description='Remove the link'),
    BotCommand(command='tables', description='List accessible tables'),
    BotCommand(command='reset', description='Reset the conversation'),
    BotCommand(command='status', description='Show link status'),
    BotCommand(command='help', description='Show help'),
]

ALLOWED_UPDATES = ['message', 'callback_query']


async def register_commands(bot: Bot) -> None:
    """Register the command menu shown in private chats."""
    await bot.set_my_commands(commands=BOT_COMMANDS, scope=BotCommandScopeAllPrivateChats())
    LOGGER.info('Registered %d commands', len(BOT_COMMANDS))


async def setup_webhook(bot: Bot, url: str) -> None:
    """Verify the token, point Telegram at the webhook and register commands."""
    me = await bot.get_me()
    LOGGER.info('Bot verified: @%s (%s)', me.username, me.first_name)

    await bot.set_webhook(
        url,
        secret_token=CONFIG.webhook_secret,
        allowed_updates=ALLOWED_UPDATES,
    )
    LOGGER.info('Webhook set: %s', url)
    if not CONFIG.webhook_secret:
        LOGGER.warning('No webhook secret configured, incoming updates are not verified')

    await register_commands(bot)


async def remove_webhook(bot: Bot) -> None:
    await bot.delete_webhook()
    LOGGER.info('Webhook removed')


async def show_webhook_info(bot: Bot) -> None:
    """Print bot identity and webhook status."""
    me = await bot.get_me()
    info = await bot.get_webhook_info()

    print(f'Bot: @{me.username} ({me.first_name}), id {me.id}')
    print(f'Webhook URL: {info.url or "(not set)"}')
    print(f'Pending updates: {info.pending_update_count}')
    if info.last_error_message:
        print(f'Last error: {info.last_error_message} at {info.last_error_date}')
