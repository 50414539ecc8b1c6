"""HTTP control surface: one POST endpoint forwarding to service methods."""

from __future__ import annotations

import inspect
import json
import traceback
from collections.abc import Iterable
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from chatflux.errors import ProtocolError

CONTROL_METHODS = (
    "create_person",
    "create_room",
    "get_person",
    "get_room",
    "get_messages_for_room",
    "get_private_room_for_person",
    "get_last_message_in_room",
    "send_message",
    "send_message_to_room",
    "send_message_to_person",
    "dispatch_message_to_room",
    "dispatch_message_to_person",
    "push_state",
    "pop_state",
)
DEFAULT_PORT = 8075


class ControlRequest(BaseModel):
    method: str | None = Field(default=None, description="Service method to call")
    args: list[Any] = Field(default_factory=list, description="Positional arguments")


def error_body(error: Exception) -> dict[str, Any]:
    return {
        "error": True,
        "meta": {
            "message": str(error),
            "stack": "".join(traceback.format_exception(error)),
        },
    }


def create_control_app(service: Any, methods: Iterable[str] = CONTROL_METHODS) -> FastAPI:
    """Build the control app around ``service``.

    Only names in ``methods`` that the service actually provides can be called.
    """

    allowed = frozenset(methods)
    app = FastAPI(title="chatflux control")

    @app.exception_handler(ProtocolError)
    async def _protocol_error(_request: Request, error: ProtocolError) -> JSONResponse:
        return JSONResponse(status_code=500, content=error_body(error))

    @app.api_route("/", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def control(request: Request) -> JSONResponse:
        try:
            data = await _call(service, allowed, request)
        except ProtocolError:
            raise
        except Exception as exc:
            logger.opt(exception=True).warning("control.call_failed path={}", request.url.path)
            return JSONResponse(status_code=500, content=error_body(exc))
        return JSONResponse(content={"data": jsonable_encoder(data)})

    return app


async def _call(service: Any, allowed: frozenset[str], request: Request) -> Any:
    if request.method != "POST":
        raise ProtocolError("The bot API only accepts POST requests.")

    try:
        body = ControlRequest.model_validate(json.loads(await request.body() or b"{}"))
    except (ValueError, ValidationError) as exc:
        raise ProtocolError(f"Malformed request body: {exc}") from exc

    if not body.method:
        raise ProtocolError("Body missing `method` property.")

    target = getattr(service, body.method, None) if body.method in allowed else None
    if not callable(target):
        raise ProtocolError(f"Bot does not have method `{body.method}`.")

    logger.info("control.call method={} args={}", body.method, len(body.args))
    result = target(*body.args)
    if inspect.isawaitable(result):
        result = await result
    return result


def serve(service: Any, host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
    """Run the control app with uvicorn until interrupted."""

    logger.info("control.listen host={} port={}", host, port)
    uvicorn.run(create_control_app(service), host=host, port=port, log_level="warning")
