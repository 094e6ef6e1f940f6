import argparse
import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application
from aiohttp import web

from botovis_telegram.agent import agent_commands_router, agent_router
from botovis_telegram.auth import auth_router
from botovis_telegram.commands import (
    ALLOWED_UPDATES,
    remove_webhook,
    setup_webhook,
    show_webhook_info,
)
from botovis_telegram.config import CONFIG
from botovis_telegram.errors import setup_error_handler
from botovis_telegram.info import info_router
from botovis_telegram.links import LinkStore
from botovis_telegram.middlewares import setup_middlewares
from botovis_telegram.orchestrator import AgentOrchestrator
from botovis_telegram.utils import load_object

LOGGER = logging.getLogger(__name__)


def setup_bot_handlers(dp: Dispatcher) -> None:
    """Register all bot handlers (commands, routers, etc.)."""
    # /start, /help, /status
    dp.include_router(info_router)
    LOGGER.info('Info handlers initialized')
    # /connect, /disconnect
    dp.include_router(auth_router)
    LOGGER.info('Auth handlers initialized')
    # Agent commands and messages
    # NOTE: all other text messages fall to the agent
    dp.include_router(agent_commands_router)
    dp.include_router(agent_router)
    LOGGER.info('Agent handlers initialized')


def build_dispatcher(orchestrator: AgentOrchestrator, link_store: LinkStore) -> Dispatcher:
    dp = Dispatcher(orchestrator=orchestrator, link_store=link_store)
    setup_middlewares(dp)
    setup_error_handler(dp)
    setup_bot_handlers(dp)
    return dp


def load_collaborators() -> tuple[AgentOrchestrator, LinkStore]:
    """Instantiate the configured orchestrator and link store factories."""
    if not CONFIG.orchestrator:
        raise SystemExit(
            'BOTOVIS_TELEGRAM_ORCHESTRATOR is not set; expected "module:factory"'
        )
    orchestrator = load_object(CONFIG.orchestrator)()
    link_store = load_object(CONFIG.link_store)()
    LOGGER.info('Orchestrator: %s, link store: %s', CONFIG.orchestrator, CONFIG.link_store)
    return orchestrator, link_store


def run_webhook(bot: Bot, args: argparse.Namespace) -> None:
    if not CONFIG.enabled:
        LOGGER.error('Telegram integration is disabled (BOTOVIS_TELEGRAM_ENABLED)')
        sys.exit(1)

    dp = build_dispatcher(*load_collaborators())
    webhook_url = args.url or CONFIG.webhook_url

    async def on_startup(bot: Bot) -> None:
        LOGGER.info(f'Registering webhook: {webhook_url}')
        await bot.set_webhook(
            webhook_url, secret_token=CONFIG.webhook_secret, allowed_updates=ALLOWED_UPDATES
        )

    # Webhook-specific setup
    dp.startup.register(on_startup)
    dp.shutdown.register(bot.delete_webhook)
    app = web.Application()
    webhook_requests_handler = SimpleRequestHandler(
        dispatcher=dp, bot=bot, secret_token=CONFIG.webhook_secret
    )
    webhook_requests_handler.register(app, path=CONFIG.webhook_path)
    setup_application(app, dp, bot=bot)
    web.run_app(app, host=CONFIG.backend_host, port=CONFIG.backend_port)


async def run_polling(bot: Bot, args: argparse.Namespace) -> None:
    dp = build_dispatcher(*load_collaborators())

    # Polling-specific setup - start polling loop
    await bot.delete_webhook()
    await dp.start_polling(bot, allowed_updates=ALLOWED_UPDATES)


async def run_setup(bot: Bot, args: argparse.Namespace) -> None:
    async with bot:
        if args.remove:
            await remove_webhook(bot)
        elif args.info:
            await show_webhook_info(bot)
        else:
            await setup_webhook(bot, args.url or CONFIG.webhook_url)


if __name__ == '__main__':
    logging.basicConfig(level=getattr(logging, CONFIG.logging_level), stream=sys.stdout)

    parser = argparse.ArgumentParser()
    parser.add_argument('-p', '--polling', action='store_true', help='Enable polling mode.')
    parser.add_argument(
        '--setup', action='store_true', help='Set the webhook and register commands.'
    )
    parser.add_argument('--remove', action='store_true', help='Delete the webhook.')
    parser.add_argument('--info', action='store_true', help='Show bot and webhook status.')
    parser.add_argument('--url', help='Webhook URL overriding the configured one.')

    args: argparse.Namespace = parser.parse_args()

    bot = Bot(CONFIG.bot_token)

    if args.setup or args.remove or args.info:
        asyncio.run(run_setup(bot, args))
    elif args.polling:
        asyncio.run(run_polling(bot, args))
    else:
        run_webhook(bot, args)
