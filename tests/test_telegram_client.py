import pytest
import requests

from pararius_notifier.telegram_client import TelegramClient, TelegramError


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def client():
    return TelegramClient(bot_token="123:abc", timeout_seconds=5)


def test_get_me(client, monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _Response(payload={"ok": True, "result": {"username": "pararius_bot"}})

    monkeypatch.setattr(requests, "get", fake_get)

    assert client.get_me() == {"username": "pararius_bot"}
    assert calls == [("https://api.telegram.org/bot123:abc/getMe", 5)]


def test_get_me_rejects_bad_token(client, monkeypatch):
    monkeypatch.setattr(
        requests,
        "get",
        lambda url, timeout: _Response(payload={"ok": False, "description": "Unauthorized"}),
    )
    with pytest.raises(TelegramError, match="Unauthorized"):
        client.get_me()


def test_get_updates_long_poll(client, monkeypatch):
    captured = {}

    def fake_get(url, params, timeout):
        captured.update(url=url, params=params, timeout=timeout)
        return _Response(payload={"ok": True, "result": [{"update_id": 1}, "junk"]})

    monkeypatch.setattr(requests, "get", fake_get)

    assert client.get_updates(offset=7, poll_timeout=30) == [{"update_id": 1}]
    assert captured["url"].endswith("/getUpdates")
    assert captured["params"]["offset"] == 7
    assert captured["params"]["timeout"] == 30
    assert captured["timeout"] == 35


def test_get_updates_non_ok_payload(client, monkeypatch):
    monkeypatch.setattr(
        requests, "get", lambda url, params, timeout: _Response(payload={"ok": False})
    )
    assert client.get_updates(offset=0) == []


def test_send_message(client, monkeypatch):
    captured = {}

    def fake_post(url, json, timeout):
        captured.update(url=url, json=json, timeout=timeout)
        return _Response()

    monkeypatch.setattr(requests, "post", fake_post)
    client.send_message(42, "hello")

    assert captured["url"].endswith("/sendMessage")
    assert captured["json"] == {"chat_id": 42, "text": "hello", "disable_web_page_preview": True}


def test_send_message_raises_on_error(client, monkeypatch):
    monkeypatch.setattr(
        requests, "post", lambda url, json, timeout: _Response(status_code=403, text="blocked")
    )
    with pytest.raises(requests.HTTPError):
        client.send_message(42, "hello")


def test_requests_are_not_tied_to_a_shared_session(monkeypatch):
    def no_sessions():
        raise AssertionError("TelegramClient must not hold a requests.Session")

    monkeypatch.setattr(requests, "Session", no_sessions)
    sent = []
    monkeypatch.setattr(requests, "post", lambda url, json, timeout: sent.append(json["chat_id"]) or _Response())

    client = TelegramClient(bot_token="123:abc", timeout_seconds=5)
    client.send_message(1, "from the command listener")
    client.send_message(2, "from the delivery worker")

    assert sent == [1, 2]
