"""
Telegram user-session client (MTProto via Telethon).

The Bot API cannot read channel history, so this adapter logs in as a user
with a persisted StringSession generated by ``stock-helper telegram-session``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from telethon import TelegramClient
from telethon.errors import RPCError
from telethon.sessions import StringSession

from stock_helper.core.errors import ConfigurationError, UpstreamError
from stock_helper.core.log import silent_logger
from stock_helper.core.metrics import record_latency, record_session_connect, record_upstream_error

logger = logging.getLogger(__name__)

NON_TEXT_PLACEHOLDER = "[Media/Non-text content]"
DEFAULT_SEARCH_BATCH = 100

MessagesResult = Union[List[Dict[str, Any]], UpstreamError]


def build_client(api_id: int, api_hash: str, session: str = "") -> TelegramClient:
    return TelegramClient(
        StringSession(session),
        api_id,
        api_hash,
        connection_retries=5,
        base_logger=silent_logger("stock_helper.telethon"),
    )


class TelegramSessionManager:
    """Owns the single Telegram session of the process.

    ``get_client`` is an idempotent get-or-create: concurrent first callers
    await the same connection task. A failed connection is dropped so the
    next caller starts a fresh attempt.
    """

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        session: str = "",
        client_factory: Optional[Callable[[int, str, str], Any]] = None,
    ) -> None:
        if not api_id or not api_hash:
            raise ConfigurationError("TELEGRAM_API_ID and TELEGRAM_API_HASH are required")
        self._api_id = api_id
        self._api_hash = api_hash
        self._session = session
        self._factory = client_factory or build_client
        self._task: Optional[asyncio.Task] = None

    async def _connect(self) -> Any:
        client = self._factory(self._api_id, self._api_hash, self._session)
        try:
            await client.connect()
            if not await client.is_user_authorized():
                raise ConfigurationError(
                    "Telegram session is not authorized; run `stock-helper telegram-session` "
                    "and set TELEGRAM_SESSION"
                )
        except Exception:
            record_session_connect("telegram", ok=False)
            await client.disconnect()
            raise
        record_session_connect("telegram", ok=True)
        logger.info("Telegram session established")
        return client

    async def get_client(self) -> Any:
        task = self._task
        if task is None:
            task = asyncio.ensure_future(self._connect())
            self._task = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._task is task and task.done():
                self._task = None
            raise

    @property
    def connected(self) -> bool:
        task = self._task
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return
        await task.result().disconnect()


def _timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return value


def format_message(msg: Any) -> Dict[str, Any]:
    sender_id = getattr(msg, "sender_id", None)
    return {
        "id": msg.id,
        "date": _timestamp(msg.date),
        "text": msg.message or NON_TEXT_PLACEHOLDER,
        "sender": str(sender_id) if sender_id is not None else "Unknown",
    }


class TelegramGateway:
    """Channel reads on top of the shared session."""

    service = "telegram"

    def __init__(self, sessions: TelegramSessionManager, search_batch: int = DEFAULT_SEARCH_BATCH) -> None:
        self.sessions = sessions
        self.search_batch = search_batch

    async def _get_messages(self, operation: str, channel: str, **kwargs: Any) -> Union[List[Any], UpstreamError]:
        client = await self.sessions.get_client()
        try:
            with record_latency(self.service, operation):
                return list(await client.get_messages(channel, **kwargs))
        except RPCError as e:
            status = getattr(e, "code", None)
            record_upstream_error(self.service, operation, str(status))
            return UpstreamError(
                message=f"Telegram Error: {getattr(e, 'message', None) or e}",
                code=str(status) if status is not None else None,
                status=status if isinstance(status, int) else None,
            )

    async def fetch_messages(self, channel: str, limit: int) -> MessagesResult:
        messages = await self._get_messages("get_messages", channel, limit=limit)
        if isinstance(messages, UpstreamError):
            return messages
        return [format_message(m) for m in messages]

    async def search_messages(self, channel: str, query: str, limit: int) -> MessagesResult:
        # over-fetch a fixed batch, then trim to the caller's limit
        messages = await self._get_messages("search_messages", channel, limit=self.search_batch, search=query)
        if isinstance(messages, UpstreamError):
            return messages
        return [format_message(m) for m in messages[:limit]]
