"""
Extension points of the Consumer service.

Each slot has a fixed default. A slot can be registered once, and no
slot can change after the service starts serving.
"""

from typing import Any, Awaitable, Callable, Dict

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.errors import ConfigurationError
from shared.logging import get_logger
from .models import DeepLinkingResult, LaunchIntent, MembershipsRequest


LaunchCallback = Callable[[LaunchIntent, Request], Awaitable[Response]]
DeepLinkingCallback = Callable[[DeepLinkingResult, Request], Awaitable[Response]]
MembershipsCallback = Callable[[MembershipsRequest, Request], Awaitable[Response]]
InvalidRequestCallback = Callable[[Request, Dict[str, Any]], Awaitable[Response]]


def _missing_callback(message: str):
    async def callback(action: Any, request: Request) -> Response:
        return JSONResponse(
            status_code=500,
            content={
                "status": 500,
                "error": "Internal Server Error",
                "details": {"message": message}
            }
        )
    return callback


async def _send_error(request: Request, error: Dict[str, Any]) -> Response:
    return JSONResponse(status_code=error["status"], content=error)


DEFAULT_CALLBACKS: Dict[str, Callable[..., Awaitable[Response]]] = {
    "core_launch": _missing_callback("MISSING_CORE_LAUNCH_CALLBACK"),
    "deep_linking_launch": _missing_callback("MISSING_DEEPLINKING_LAUNCH_CALLBACK"),
    "deep_linking_request": _missing_callback("MISSING_DEEPLINKING_REQUEST_CALLBACK"),
    "memberships_request": _missing_callback("MISSING_MEMBERSHIPS_REQUEST_CALLBACK"),
    "invalid_login_request": _send_error,
    "invalid_deep_linking_request": _send_error,
    "invalid_access_token_request": _send_error,
}


class ConsumerCallbacks:
    """Registered callbacks, looked up by slot name."""

    def __init__(self):
        self._callbacks: Dict[str, Callable[..., Awaitable[Response]]] = dict(DEFAULT_CALLBACKS)
        self._registered = set()
        self._frozen = False
        self.logger = get_logger("consumer.callbacks")

    def register(self, slot: str, callback: Callable[..., Awaitable[Response]]):
        if slot not in DEFAULT_CALLBACKS:
            raise ConfigurationError("UNKNOWN_CALLBACK", f"No callback slot named {slot}")
        if self._frozen:
            raise ConfigurationError("CALLBACKS_FROZEN", "Callbacks cannot change once the service is serving")
        if slot in self._registered:
            raise ConfigurationError("CALLBACK_ALREADY_REGISTERED", f"Callback {slot} is already registered")

        self._callbacks[slot] = callback
        self._registered.add(slot)
        self.logger.info("Callback registered", slot=slot)
        return callback

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, slot: str) -> Callable[..., Awaitable[Response]]:
        return self._callbacks[slot]

    def is_registered(self, slot: str) -> bool:
        return slot in self._registered

    # Decorator forms

    def on_core_launch(self, callback: LaunchCallback) -> LaunchCallback:
        return self.register("core_launch", callback)

    def on_deep_linking_launch(self, callback: LaunchCallback) -> LaunchCallback:
        return self.register("deep_linking_launch", callback)

    def on_deep_linking_request(self, callback: DeepLinkingCallback) -> DeepLinkingCallback:
        return self.register("deep_linking_request", callback)

    def on_memberships_request(self, callback: MembershipsCallback) -> MembershipsCallback:
        return self.register("memberships_request", callback)

    def on_invalid_login_request(self, callback: InvalidRequestCallback) -> InvalidRequestCallback:
        return self.register("invalid_login_request", callback)

    def on_invalid_deep_linking_request(self, callback: InvalidRequestCallback) -> InvalidRequestCallback:
        return self.register("invalid_deep_linking_request", callback)

    def on_invalid_access_token_request(self, callback: InvalidRequestCallback) -> InvalidRequestCallback:
        return self.register("invalid_access_token_request", callback)

