# function_app.py
# v2 Function App with:
#   - chat        : classify a question, search the matching CSV dataset, fall back to plain chat
#   - casual_chat : friendly small-talk completion
#
# See inventory_chat/config.py for the OpenAI / storage / pipeline env vars.
# CORS_ALLOWED_ORIGINS: comma separated allow-list (localhost dev defaults when unset).
# ENABLE_DEBUGPY=1 (+ WAIT_FOR_DEBUGGER=1, DEBUGPY_HOST, DEBUGPY_PORT) attaches debugpy locally.

import json
import logging
import os

import azure.functions as func

from inventory_chat.config import get_config, load_local_env_file
from inventory_chat.errors import ChatError, ConfigError, RequestTimeoutError
from inventory_chat.service import open_service

load_local_env_file(os.path.join(os.path.dirname(__file__), ".env"))

if os.getenv("ENABLE_DEBUGPY") == "1":
    import debugpy

    host = os.getenv("DEBUGPY_HOST", "127.0.0.1")
    port = int(os.getenv("DEBUGPY_PORT", "5678"))
    try:
        debugpy.listen((host, port))
        logging.info("debugpy listening on %s:%s", host, port)
    except RuntimeError:
        pass  # already listening
    if os.getenv("WAIT_FOR_DEBUGGER") == "1":
        logging.info("Waiting for debugger to attach...")
        debugpy.wait_for_client()


# ---------------------------
# CORS allow-list
# ---------------------------
def _allowed_origins() -> set[str]:
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "").strip()
    if not raw:
        return {"http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:4280"}
    return {o.strip() for o in raw.split(",") if o.strip()}


def _cors_headers(req: func.HttpRequest) -> dict:
    origin = req.headers.get("Origin")
    if not origin or origin not in _allowed_origins():
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Vary": "Origin",
        "Access-Control-Allow-Methods": "POST,OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
    }


def _json(req: func.HttpRequest, payload: dict, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload),
        status_code=status_code,
        mimetype="application/json",
        headers=_cors_headers(req),
    )


def _user_message(req: func.HttpRequest):
    try:
        body = req.get_json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    message = body.get("userMessage")
    if not isinstance(message, str):
        return None
    return message.strip() or None


def _missing_input(req: func.HttpRequest) -> func.HttpResponse:
    logging.warning("400: missing userMessage")
    return _json(
        req,
        {"error": "Missing user input.", "details": "Provide a non-empty 'userMessage' in the JSON body."},
        status_code=400,
    )


async def _run(req: func.HttpRequest, user_message: str, call, service_factory, config_loader):
    """Shared config / service / error-envelope handling for both chat routes."""
    try:
        config = config_loader()
    except ConfigError as e:
        logging.error("Chat configuration error: %s", e)
        return None, _json(req, {"error": "Server misconfiguration", "details": str(e)}, status_code=500)

    try:
        async with service_factory(config) as service:
            return await call(service, user_message), None
    except RequestTimeoutError as e:
        logging.error("Chat request timed out: %s", e)
        return None, _json(req, {"error": str(e), "details": e.hint}, status_code=e.status_code)
    except ChatError as e:
        logging.exception("Chat request failed")
        return None, _json(req, {"error": "Error processing request.", "details": str(e)}, status_code=e.status_code)
    except Exception as e:
        logging.exception("Chat request failed with an unexpected error")
        return None, _json(req, {"error": "Error processing request.", "details": str(e)}, status_code=500)


async def handle_chat(req: func.HttpRequest, service_factory=open_service, config_loader=get_config) -> func.HttpResponse:
    logging.info("Chat function triggered.")
    if req.method == "OPTIONS":
        return func.HttpResponse(status_code=204, headers=_cors_headers(req))

    user_message = _user_message(req)
    if not user_message:
        return _missing_input(req)

    reply, error = await _run(
        req, user_message, lambda s, m: s.answer(m), service_factory, config_loader
    )
    if error is not None:
        return error
    return _json(req, {"message": reply})


async def handle_casual_chat(req: func.HttpRequest, service_factory=open_service, config_loader=get_config) -> func.HttpResponse:
    logging.info("Casual chat function triggered.")
    if req.method == "OPTIONS":
        return func.HttpResponse(status_code=204, headers=_cors_headers(req))

    user_message = _user_message(req)
    if not user_message:
        return _missing_input(req)

    reply, error = await _run(
        req, user_message, lambda s, m: s.casual(m), service_factory, config_loader
    )
    if error is not None:
        return error
    return _json(req, {"success": True, "message": reply})


# ---------------------------
# v2 FunctionApp + routes
# ---------------------------
app = func.FunctionApp()


@app.function_name(name="chat")
@app.route(route="chat", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
async def chat(req: func.HttpRequest) -> func.HttpResponse:
    return await handle_chat(req)


@app.function_name(name="casual_chat")
@app.route(route="casual-chat", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
async def casual_chat(req: func.HttpRequest) -> func.HttpResponse:
    return await handle_casual_chat(req)
