"""
Shared fixtures: fake HTTP responses for the Trading 212 client and a fake
Telethon client for the Telegram session.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
import requests

from stock_helper.adapters.trading212_client import Trading212Client


def make_response(status: int = 200, body=None, reason: str = "OK", url: str = "https://example.test") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp.url = url
    resp.encoding = "utf-8"
    if body is None:
        resp._content = b""
    elif isinstance(body, (bytes, str)):
        resp._content = body.encode("utf-8") if isinstance(body, str) else body
    else:
        resp._content = json.dumps(body).encode("utf-8")
    return resp


@pytest.fixture
def http_session():
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.get.return_value = make_response(200, {})
    return session


@pytest.fixture
def t212_client(http_session):
    return Trading212Client("key", "secret", base_url="https://demo.trading212.com/api/v0", session=http_session)


def make_message(msg_id: int, text="hello", sender_id=42, date=None):
    return SimpleNamespace(id=msg_id, message=text, sender_id=sender_id, date=date)


@pytest.fixture
def telethon_client():
    client = Mock()
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    client.is_user_authorized = AsyncMock(return_value=True)
    client.get_messages = AsyncMock(return_value=[])
    return client
