import asyncio
import json
from contextlib import asynccontextmanager

import azure.functions as func
import pytest

import function_app
from inventory_chat.errors import ConfigError, DatasetNotFoundError, RequestTimeoutError


class StubService:
    def __init__(self, reply="ok", error=None):
        self.reply = reply
        self.error = error
        self.messages = []

    async def answer(self, message):
        self.messages.append(message)
        if self.error:
            raise self.error
        return self.reply

    async def casual(self, message):
        return await self.answer(message)


def factory(service):
    @asynccontextmanager
    async def open_stub(config):
        yield service

    return open_stub


def request(body, method="POST", headers=None):
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return func.HttpRequest(
        method=method,
        url="http://localhost/api/chat",
        headers=headers or {"Content-Type": "application/json"},
        params={},
        body=raw,
    )


def call(handler, req, service=None, config_loader=lambda: object()):
    service = service or StubService()
    return asyncio.run(handler(req, service_factory=factory(service), config_loader=config_loader))


def payload(resp):
    return json.loads(resp.get_body())


def test_chat_success():
    service = StubService(reply="SKU 10271 is stored in bin A-01-03.")
    resp = call(function_app.handle_chat, request({"userMessage": "  where is 10271?  "}), service)
    assert resp.status_code == 200
    assert resp.mimetype == "application/json"
    assert payload(resp) == {"message": "SKU 10271 is stored in bin A-01-03."}
    assert service.messages == ["where is 10271?"]


@pytest.mark.parametrize("body", [
    {},
    {"userMessage": ""},
    {"userMessage": "   "},
    {"userMessage": 42},
    {"message": "hi"},
    ["userMessage"],
    b"not json",
    b"",
])
def test_missing_user_message_is_400(body):
    def broken_config():
        raise ConfigError("Missing required env var: OPENAI_API_KEY")

    service = StubService(error=RuntimeError("should not run"))
    for handler in (function_app.handle_chat, function_app.handle_casual_chat):
        resp = call(handler, request(body), service, config_loader=broken_config)
        assert resp.status_code == 400
        assert payload(resp)["error"] == "Missing user input."
    assert service.messages == []


def test_config_error_is_500():
    def broken_config():
        raise ConfigError("Missing required env var: OPENAI_API_KEY")

    resp = call(function_app.handle_chat, request({"userMessage": "hi"}), config_loader=broken_config)
    assert resp.status_code == 500
    assert payload(resp) == {"error": "Server misconfiguration", "details": "Missing required env var: OPENAI_API_KEY"}


def test_dataset_error_is_500_envelope():
    service = StubService(error=DatasetNotFoundError("File warehouseData.csv not found."))
    resp = call(function_app.handle_chat, request({"userMessage": "hi"}), service)
    assert resp.status_code == 500
    assert payload(resp) == {"error": "Error processing request.", "details": "File warehouseData.csv not found."}


def test_unexpected_error_is_500_envelope():
    service = StubService(error=KeyError("choices"))
    resp = call(function_app.handle_chat, request({"userMessage": "hi"}), service)
    assert resp.status_code == 500
    assert set(payload(resp)) == {"error", "details"}


def test_timeout_is_500_with_hint():
    service = StubService(error=RequestTimeoutError("Request timed out after 25s"))
    resp = call(function_app.handle_chat, request({"userMessage": "hi"}), service)
    assert resp.status_code == 500
    body = payload(resp)
    assert body["error"] == "Request timed out after 25s"
    assert body["details"] == RequestTimeoutError.hint


def test_casual_chat_success():
    resp = call(function_app.handle_casual_chat, request({"userMessage": "hello"}), StubService(reply="Hi!"))
    assert resp.status_code == 200
    assert payload(resp) == {"success": True, "message": "Hi!"}


def test_preflight_and_cors(monkeypatch):
    monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)
    req = request(b"", method="OPTIONS", headers={"Origin": "http://localhost:3000"})
    resp = call(function_app.handle_chat, req)
    assert resp.status_code == 204
    assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"

    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://inventory.example.com")
    resp = call(function_app.handle_chat, request({"userMessage": "hi"}, headers={"Origin": "http://localhost:3000"}))
    assert resp.status_code == 200
    assert resp.headers.get("Access-Control-Allow-Origin") is None
