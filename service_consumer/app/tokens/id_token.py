"""
ID Token issuance.
"""

import html
import secrets
import time
from typing import Dict, Any, Optional, Union

from jose import jwt
from jose.exceptions import JOSEError

from shared.logging import get_logger
from shared.config import BaseConfig
from .. import claims as lti
from ..errors import IdTokenBuildError
from ..models import (
    IdTokenData, LaunchIntent, MessageType, PrivacyLevel, ToolConfig,
)
from ..registry import ToolRegistryBase
from ..urls import deep_linking_return_url, memberships_url


ID_TOKEN_ALGORITHM = "RS256"
ID_TOKEN_LIFETIME = 24 * 60 * 60


class IdentityTokenBuilder:
    """Builds and signs the ID Token delivered to a Tool at launch."""

    def __init__(self, registry: ToolRegistryBase, config: BaseConfig):
        self.registry = registry
        self.config = config
        self.logger = get_logger("consumer.id_token")

    async def build(self, intent: Optional[LaunchIntent],
                    data: Optional[Union[IdTokenData, Dict[str, Any]]]) -> str:
        if intent is None:
            raise IdTokenBuildError("MISSING_LAUNCH_INTENT")
        if data is None:
            raise IdTokenBuildError("MISSING_IDENTITY_DATA")
        if not isinstance(data, IdTokenData):
            data = IdTokenData.model_validate(data)

        tool = await self.registry.get_tool(intent.client_id)
        if tool is None:
            raise IdTokenBuildError("INVALID_CLIENT_ID")

        context = data.launch.context
        id_token: Dict[str, Any] = {
            "iss": self.config.consumer_url,
            "aud": intent.client_id,
            "sub": intent.user,
            "nonce": secrets.token_urlsafe(18),
            lti.DEPLOYMENT_ID: intent.deployment_id,
            lti.VERSION: lti.LTI_VERSION,
            lti.MESSAGE_TYPE: intent.message_type.value,
            lti.ROLES: data.user.roles,
            lti.CONTEXT: context.model_dump(exclude_none=True),
        }

        if intent.message_type == MessageType.DEEPLINKING_LAUNCH:
            id_token[lti.CUSTOM] = dict(tool.custom_parameters)
            id_token[lti.DEEP_LINKING_SETTINGS] = {
                "deep_link_return_url": deep_linking_return_url(self.config, context.id, intent.dl_state),
                "accept_types": ["ltiResourceLink"],
                "accept_presentation_document_targets": ["iframe", "window"],
                "accept_multiple": False,
                "auto_create": False,
                "title": tool.name,
            }
            privacy = tool.privacy
        else:
            tool_link = await self.registry.get_tool_link(intent.tool_link_id)
            if tool_link is None or tool_link.client_id != tool.client_id:
                raise IdTokenBuildError("INVALID_TOOL_LINK_ID", details={"tool_link_id": intent.tool_link_id})

            id_token[lti.CUSTOM] = {**tool.custom_parameters, **tool_link.custom_parameters}
            id_token[lti.TARGET_LINK_URI] = tool_link.url
            resource = data.launch.resource
            if resource is None and intent.resource_id:
                resource = {"id": intent.resource_id}
            if resource is not None:
                id_token[lti.RESOURCE_LINK] = resource
            privacy = tool_link.effective_privacy(tool)

        id_token.update(self._personal_claims(data, privacy))

        if "MEMBERSHIPS" in tool.scopes and context.id:
            id_token[lti.NAMES_ROLE_SERVICE] = {
                "context_memberships_url": memberships_url(self.config, context.id),
                "service_versions": lti.NRPS_SERVICE_VERSIONS,
            }

        return self._sign(id_token, tool)

    @staticmethod
    def _personal_claims(data: IdTokenData, privacy: PrivacyLevel) -> Dict[str, Any]:
        personal = {}
        if privacy.shares_email:
            personal["email"] = data.user.email
        if privacy.shares_name:
            personal["given_name"] = data.user.given_name
            personal["family_name"] = data.user.family_name
            personal["name"] = data.user.name
        return {k: v for k, v in personal.items() if v is not None}

    def _sign(self, id_token: Dict[str, Any], tool: ToolConfig) -> str:
        if not tool.private_key:
            raise IdTokenBuildError("MISSING_SIGNING_KEY", "Tool has no signing key")

        now = int(time.time())
        id_token["iat"] = now
        id_token["exp"] = now + ID_TOKEN_LIFETIME

        try:
            token = jwt.encode(
                id_token,
                tool.private_key,
                algorithm=ID_TOKEN_ALGORITHM,
                headers={"kid": tool.kid} if tool.kid else None
            )
        except JOSEError as e:
            self.logger.error("Failed to sign ID Token", client_id=tool.client_id, error=str(e))
            raise IdTokenBuildError("MISSING_SIGNING_KEY", f"Tool signing key is unusable: {e}")

        self.logger.info(
            "ID Token issued",
            client_id=tool.client_id,
            message_type=id_token[lti.MESSAGE_TYPE]
        )
        return token

    async def build_form(self, intent: Optional[LaunchIntent],
                         data: Optional[Union[IdTokenData, Dict[str, Any]]]) -> str:
        """Build the ID Token and wrap it in its delivery form."""
        if intent is None:
            raise IdTokenBuildError("MISSING_LAUNCH_INTENT")
        return render_id_token_form(intent, await self.build(intent, data))


def render_id_token_form(intent: LaunchIntent, id_token: str) -> str:
    """Self-submitting form POSTing the ID Token to the Tool's redirect URI."""
    fields = ""
    if intent.state:
        fields += f'<input type="hidden" name="state" value="{html.escape(intent.state)}"/>'
    fields += f'<input type="hidden" name="id_token" value="{html.escape(id_token)}"/>'
    return (
        f'<form id="lti_authenticate" style="display: none;" action="{html.escape(intent.redirect_uri)}" '
        f'method="POST">{fields}</form>'
        '<script>document.getElementById("lti_authenticate").submit()</script>'
    )
