"""
Consumer service: the LTI 1.3 Advantage Platform endpoints.
"""

from typing import Any, Dict, Optional, Union

import httpx
from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ConsumerException
from .callbacks import ConsumerCallbacks
from .errors import TokenValidationError
from .keys.resolver import KeyResolver
from .launch.hint import LaunchHintCodec
from .launch.initiation import LoginInitiator, render_login_form
from .models import IdTokenData, LaunchIntent, MembershipsRequest, SCOPES, ServiceKind
from .nonce.ledger import NonceLedgerBase, create_nonce_ledger
from .registry import InMemoryToolRegistry, ToolRegistryBase
from .tokens.access_token import AccessTokenService, parse_bearer_authorization
from .tokens.id_token import IdentityTokenBuilder
from .urls import memberships_url
from .validation.assertion import AssertionVerifier
from .validation.deep_linking import DeepLinkingResponseValidator
from .validation.login_request import LoginRequestValidator


SERVICE_NAME = "consumer"
SERVICE_PORT = 8020


def error_message(exc: ConsumerException) -> str:
    if exc.message == exc.code:
        return exc.code
    return f"{exc.code}. Details: {exc.message}"


class ConsumerService(BaseService):
    """Consumer service implementation."""

    def __init__(self,
                 config: Optional[ServiceConfig] = None,
                 registry: Optional[ToolRegistryBase] = None,
                 nonce_ledger: Optional[NonceLedgerBase] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.registry = registry if registry is not None else InMemoryToolRegistry()
        self.nonce_ledger = nonce_ledger if nonce_ledger is not None else create_nonce_ledger(self.config)
        self.callbacks = ConsumerCallbacks()

        self.key_resolver = KeyResolver.from_config(self.config, http_client=http_client, metrics=self.metrics)
        self.verifier = AssertionVerifier(self.key_resolver)
        self.hint_codec = LaunchHintCodec.from_config(self.config)

        self.login_validator = LoginRequestValidator(self.registry, self.hint_codec, self.nonce_ledger)
        self.id_tokens = IdentityTokenBuilder(self.registry, self.config)
        self.deep_linking_validator = DeepLinkingResponseValidator(
            self.registry, self.verifier, self.nonce_ledger, self.config
        )
        self.access_tokens = AccessTokenService(self.registry, self.verifier, self.config)
        self.initiator = LoginInitiator(self.registry, self.hint_codec, self.config)

        self.app.state.service = self
        self._setup_consumer_routes()

    async def on_startup(self):
        await self.nonce_ledger.start()
        self.callbacks.freeze()

    async def on_shutdown(self):
        await self.nonce_ledger.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        breakers = self.key_resolver.circuit_breakers.get_all_states().values()
        return {
            "nonce_ledger": "ok" if await self.nonce_ledger.ping() else "error",
            "tool_key_sets": "degraded" if any(b["state"] == "open" for b in breakers) else "ok",
        }

    # Launching

    async def launch_core(self, tool_link_id: str, user_id: str, resource_id: Optional[str] = None) -> str:
        """Self-submitting login initiation form for a resource launch."""
        return render_login_form(await self.initiator.launch_core(tool_link_id, user_id, resource_id))

    async def launch_deep_linking(self, client_id: str, user_id: str) -> str:
        """Self-submitting login initiation form for a deep-linking launch."""
        return render_login_form(await self.initiator.launch_deep_linking(client_id, user_id))

    async def id_token_response(self, intent: LaunchIntent,
                                data: Union[IdTokenData, Dict[str, Any]]) -> HTMLResponse:
        """Respond to a launch with the signed ID Token form."""
        return HTMLResponse(await self.id_tokens.build_form(intent, data))

    # Routes

    @staticmethod
    async def _request_params(request: Request) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(request.query_params)
        if request.method == "POST":
            form = await request.form()
            params.update({key: value for key, value in form.items() if isinstance(value, str)})
        return params

    def _setup_consumer_routes(self):
        """Set up LTI routes."""

        @self.app.api_route(self.config.login_route, methods=["GET", "POST"])
        async def login(request: Request):
            """OIDC third-party-initiated login request from a Tool."""
            params = await self._request_params(request)
            try:
                intent = await self.login_validator.validate(params)
            except ConsumerException as e:
                self.metrics.record_lti_request("login", e.code)
                status, error = (503, "Service Unavailable") if e.retryable else (401, "Unauthorized")
                return await self.callbacks.get("invalid_login_request")(request, {
                    "status": status,
                    "error": error,
                    "details": {
                        "description": "Error validating login request",
                        "message": error_message(e),
                        "bodyReceived": {k: v for k, v in params.items() if k not in request.query_params},
                        "queryReceived": dict(request.query_params),
                    }
                })

            self.metrics.record_lti_request("login", "ok")
            if intent.service == ServiceKind.DEEPLINKING:
                return await self.callbacks.get("deep_linking_launch")(intent, request)
            return await self.callbacks.get("core_launch")(intent, request)

        @self.app.post(self.config.deep_linking_route)
        async def deep_linking(request: Request):
            """Deep-linking response from a Tool."""
            form = await request.form()
            body = {key: value for key, value in form.items() if isinstance(value, str)}
            try:
                result = await self.deep_linking_validator.validate(body, request.query_params)
            except ConsumerException as e:
                self.metrics.record_lti_request("deep_linking", e.code)
                status, error = (503, "Service Unavailable") if e.retryable else (400, "Bad Request")
                return await self.callbacks.get("invalid_deep_linking_request")(request, {
                    "status": status,
                    "error": error,
                    "details": {
                        "description": "Error validating deep linking response",
                        "message": error_message(e),
                        "bodyReceived": body,
                    }
                })

            self.metrics.record_lti_request("deep_linking", "ok")
            return await self.callbacks.get("deep_linking_request")(result, request)

        @self.app.post(self.config.accesstoken_route)
        async def access_token(request: Request):
            """Client credentials grant."""
            form = await request.form()
            body = {key: value for key, value in form.items() if isinstance(value, str)}
            try:
                response = await self.access_tokens.issue(body)
            except ConsumerException as e:
                self.metrics.record_lti_request("access_token", e.code)
                status, error = (503, "Service Unavailable") if e.retryable else (400, "Bad Request")
                return await self.callbacks.get("invalid_access_token_request")(request, {
                    "status": status,
                    "error": error,
                    "details": {
                        "description": "Error validating access token request",
                        "message": error_message(e),
                        "bodyReceived": {k: v for k, v in body.items() if k != "client_assertion"},
                    }
                })

            self.metrics.record_lti_request("access_token", "ok")
            return JSONResponse(status_code=200, content=response.model_dump())

        @self.app.get(self.config.memberships_route + "/{context}")
        async def memberships(context: str, request: Request):
            """Names and roles service, for Tools holding the memberships scope."""
            try:
                token = parse_bearer_authorization(request.headers.get("Authorization"))
                access = await self.access_tokens.validate(token, SCOPES["MEMBERSHIPS"])
            except TokenValidationError as e:
                self.metrics.record_lti_request("bearer", e.code)
                return JSONResponse(status_code=401, content={
                    "status": 401,
                    "error": "Unauthorized",
                    "details": {
                        "description": "Invalid access token or scopes",
                        "message": error_message(e),
                    }
                })

            self.metrics.record_lti_request("bearer", "ok")
            memberships_request = MembershipsRequest(
                endpoint=memberships_url(self.config, context),
                client_id=access.client_id,
                privacy=access.privacy,
                context_id=context,
                role=request.query_params.get("role"),
                limit=request.query_params.get("limit"),
                next=request.query_params.get("next"),
            )
            return await self.callbacks.get("memberships_request")(memberships_request, request)


def create_service(config: Optional[ServiceConfig] = None, **kwargs) -> ConsumerService:
    """Create the Consumer service."""
    return ConsumerService(config=config, **kwargs)


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    return create_service(config, **kwargs).app


if __name__ == "__main__":
    service = ConsumerService()
    service.run()
