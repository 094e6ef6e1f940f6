from pathlib import Path
from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from tg_markup import MarkupMode

DEFAULT_GUEST_MESSAGE = (
    'Please link your Telegram account first. '
    'Go to your app panel and use the "Connect Telegram" option.'
)


class Config(BaseSettings):
    if Path('.env').exists():
        model_config = SettingsConfigDict(
            env_prefix='BOTOVIS_TELEGRAM_', env_file='.env', env_file_encoding='utf-8'
        )
    else:
        model_config = SettingsConfigDict(env_prefix='BOTOVIS_TELEGRAM_')

    bot_token: str

    # Webhook endpoint is not served when disabled
    enabled: bool = True

    webhook_host: str = ''
    webhook_path: str = '/botovis/telegram/webhook'
    # Sent back by Telegram in X-Telegram-Bot-Api-Secret-Token
    webhook_secret: str | None = None

    # Webhook listener
    backend_host: str = '0.0.0.0'
    backend_port: int = 80

    # Seconds a /connect code stays valid
    connect_code_ttl: int = 300

    guest_message: str = DEFAULT_GUEST_MESSAGE
    # Send intermediate agent steps before the final answer
    show_steps: bool = False
    markup_mode: MarkupMode = MarkupMode.HTML

    # Shown by /tables when the orchestrator cannot list them
    known_tables: Annotated[list[str], NoDecode] = []

    # Collaborator factories as 'module:attribute'
    orchestrator: str | None = None
    link_store: str = 'botovis_telegram.links:MemoryLinkStore'

    admin_ids: Annotated[list[int], NoDecode] = []
    notify_admins_on_error: bool = False

    # Logging level
    logging_level: Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'] = 'INFO'

    @field_validator('admin_ids', mode='before')
    def split_ids(cls, ids: int | str | list[int] | None) -> list[int]:
        if not ids:
            return []
        elif isinstance(ids, int):
            return [ids]
        elif isinstance(ids, str):
            return [int(i) for i in ids.split(',') if i.strip()]
        elif isinstance(ids, list):
            return ids
        else:
            raise ValueError(
                f'admin_ids must be an int or comma separated list of ints, not {type(ids)}'
            )

    @field_validator('known_tables', mode='before')
    def split_tables(cls, tables: str | list[str] | None) -> list[str]:
        if not tables:
            return []
        if isinstance(tables, str):
            return [t.strip() for t in tables.split(',') if t.strip()]
        return tables

    @field_validator('markup_mode', mode='before')
    def parse_markup_mode(cls, mode: str | MarkupMode) -> MarkupMode:
        if isinstance(mode, MarkupMode):
            return mode
        if not isinstance(mode, str):
            raise ValueError(f'markup_mode must be a string, not {type(mode)}')
        for candidate in MarkupMode:
            if candidate.value.lower() == mode.strip().lower():
                return candidate
        raise ValueError(f'Unknown markup mode: {mode}')

    @property
    def webhook_url(self) -> str:
        return f'https://{self.webhook_host}{self.webhook_path}'


CONFIG = Config()
