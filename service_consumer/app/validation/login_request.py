"""
Validation of the OIDC third-party-initiated login request.
"""

import secrets
from typing import Any, Mapping, Optional

from shared.logging import get_logger, set_tool_context
from ..errors import LoginValidationError, InvalidLaunchHintError
from ..launch.hint import LaunchHintCodec
from ..models import LaunchIntent, MessageType, ServiceKind
from ..nonce.ledger import NonceLedgerBase
from ..registry import ToolRegistryBase


LAUNCH_MESSAGE_TYPES = (MessageType.RESOURCE_LAUNCH, MessageType.DEEPLINKING_LAUNCH)


class LoginRequestValidator:
    """Turns a login request into a LaunchIntent.

    Checks run in a fixed order and the first failure wins. The nonce is
    recorded only after every stateless check has passed, so a rejected
    request never consumes it.
    """

    def __init__(self, registry: ToolRegistryBase, hint_codec: LaunchHintCodec, nonce_ledger: NonceLedgerBase):
        self.registry = registry
        self.hint_codec = hint_codec
        self.nonce_ledger = nonce_ledger
        self.logger = get_logger("consumer.login")

    def _reject(self, code: str, message: Optional[str] = None) -> LoginValidationError:
        self.logger.warning("Login request rejected", reason=code)
        return LoginValidationError(code, message)

    async def validate(self, params: Mapping[str, Any]) -> LaunchIntent:
        self.logger.debug("Validating lti_message_hint")
        if not params.get("lti_message_hint"):
            raise self._reject("MISSING_LTI_MESSAGE_HINT")
        try:
            hint = self.hint_codec.decode(params["lti_message_hint"])
        except InvalidLaunchHintError as e:
            raise self._reject("INVALID_MESSAGE_HINT", e.message)
        if hint.message_type not in LAUNCH_MESSAGE_TYPES:
            raise self._reject("INVALID_MESSAGE_HINT", "Hint does not describe a launch")

        self.logger.debug("Validating nonce")
        nonce = params.get("nonce")
        if not nonce:
            raise self._reject("MISSING_NONCE")

        self.logger.debug("Validating fixed OIDC parameters")
        if params.get("scope") != "openid":
            raise self._reject("INVALID_SCOPE")
        if params.get("response_type") != "id_token":
            raise self._reject("INVALID_RESPONSE_TYPE")
        if params.get("response_mode") != "form_post":
            raise self._reject("INVALID_RESPONSE_MODE")
        if params.get("prompt") != "none":
            raise self._reject("INVALID_PROMPT")

        self.logger.debug("Validating client_id")
        client_id = params.get("client_id")
        if not client_id:
            raise self._reject("MISSING_CLIENT_ID")
        tool = await self.registry.get_tool(client_id)
        if tool is None:
            raise self._reject("UNKNOWN_CLIENT")
        if hint.client_id is not None and hint.client_id != client_id:
            raise self._reject("INVALID_MESSAGE_HINT", "Hint was issued for another Tool")
        set_tool_context(client_id=client_id)

        self.logger.debug("Validating lti_deployment_id")
        deployment_id = params.get("lti_deployment_id")
        if not deployment_id:
            raise self._reject("MISSING_DEPLOYMENT_ID")
        if deployment_id != tool.deployment_id:
            raise self._reject("INVALID_DEPLOYMENT_ID")
        set_tool_context(deployment_id=deployment_id)

        self.logger.debug("Validating redirect_uri")
        redirect_uri = params.get("redirect_uri")
        if not redirect_uri:
            raise self._reject("MISSING_REDIRECT_URI")
        if redirect_uri not in tool.redirect_uris:
            raise self._reject("INVALID_REDIRECT_URI")

        self.logger.debug("Validating login_hint")
        login_hint = params.get("login_hint")
        if not login_hint:
            raise self._reject("MISSING_LOGIN_HINT")

        if not await self.nonce_ledger.accept_once(nonce):
            raise self._reject("NONCE_ALREADY_RECEIVED")

        deep_linking = hint.message_type == MessageType.DEEPLINKING_LAUNCH
        intent = LaunchIntent(
            service=ServiceKind.DEEPLINKING if deep_linking else ServiceKind.CORE,
            client_id=client_id,
            deployment_id=deployment_id,
            user=login_hint,
            message_type=hint.message_type,
            redirect_uri=redirect_uri,
            tool_link_id=hint.tool_link_id,
            resource_id=hint.resource_id,
            state=params.get("state") or None,
            dl_state=secrets.token_hex(16) if deep_linking else None,
        )

        self.logger.info("Login request accepted", message_type=intent.message_type.value)
        return intent
