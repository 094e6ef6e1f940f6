"""Links between Telegram chats and application accounts.

A user obtains a short-lived connect code in the application panel and sends
it to the bot with ``/connect``; redeeming the code links the chat to the
user's account.
"""

from collections.abc import Callable
import logging
import secrets
import time
from typing import Protocol

from botovis_telegram.config import CONFIG
from botovis_telegram.orchestrator import Account

LOGGER = logging.getLogger(__name__)

CONNECT_CODE_DIGITS = 6


class LinkStore(Protocol):
    async def account_for_chat(self, chat_id: int) -> Account | None: ...

    async def link_chat(self, chat_id: int, account: Account) -> None: ...

    async def unlink_chat(self, chat_id: int) -> bool: ...

    async def issue_connect_code(self, account: Account) -> str: ...

    async def redeem_connect_code(self, code: str) -> Account | None: ...


def generate_connect_code() -> str:
    """Random numeric code without a leading zero."""
    low = 10 ** (CONNECT_CODE_DIGITS - 1)
    return str(low + secrets.randbelow(9 * low))


class MemoryLinkStore:
    """In-process ``LinkStore``; links and codes are lost on restart.

    Args:
        ttl: Connect code lifetime in seconds (defaults to the configured TTL)
        clock: Monotonic time source
    """

    def __init__(
        self, ttl: int | None = None, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl = CONFIG.connect_code_ttl if ttl is None else ttl
        self._clock = clock
        self._links: dict[int, Account] = {}
        self._codes: dict[str, tuple[Account, float]] = {}

    async def account_for_chat(self, chat_id: int) -> Account | None:
        return self._links.get(chat_id)

    async def link_chat(self, chat_id: int, account: Account) -> None:
        self._links[chat_id] = account

    async def unlink_chat(self, chat_id: int) -> bool:
        return self._links.pop(chat_id, None) is not None

    async def issue_connect_code(self, account: Account) -> str:
        self._drop_expired()
        code = generate_connect_code()
        while code in self._codes:
            code = generate_connect_code()
        self._codes[code] = (account, self._clock() + self.ttl)
        LOGGER.info('Issued connect code for account %s', account.id)
        return code

    async def redeem_connect_code(self, code: str) -> Account | None:
        """Consume a code; None when unknown or expired."""
        entry = self._codes.pop(code.strip(), None)
        if entry is None:
            return None
        account, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return account

    def _drop_expired(self) -> None:
        now = self._clock()
        for code in [c for c, (_, expires_at) in self._codes.items() if now >= expires_at]:
            del self._codes[code]
