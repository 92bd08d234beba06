"""
Third-party-initiated login: the request that starts a launch at the Tool.
"""

import html
from dataclasses import dataclass, field
from typing import Dict, Optional

from shared.logging import get_logger
from shared.config import BaseConfig
from ..errors import LaunchInitiationError
from ..models import LaunchHint, MessageType, ToolConfig
from ..registry import ToolRegistryBase
from .hint import LaunchHintCodec


@dataclass
class LoginInitiationRequest:
    """Login initiation parameters and the Tool URL they are sent to."""
    url: str
    params: Dict[str, str] = field(default_factory=dict)


class LoginInitiator:
    """Builds login initiation requests for resource and deep-linking launches."""

    def __init__(self, registry: ToolRegistryBase, hint_codec: LaunchHintCodec, config: BaseConfig):
        self.registry = registry
        self.hint_codec = hint_codec
        self.config = config
        self.logger = get_logger("consumer.launch")

    async def launch_core(self, tool_link_id: str, user_id: str,
                          resource_id: Optional[str] = None) -> LoginInitiationRequest:
        """Start a resource launch of ``tool_link_id`` for ``user_id``."""
        tool_link = await self.registry.get_tool_link(tool_link_id)
        if tool_link is None:
            raise LaunchInitiationError("INVALID_TOOL_LINK_ID", details={"tool_link_id": tool_link_id})
        tool = await self._get_tool(tool_link.client_id)

        hint = LaunchHint(
            message_type=MessageType.RESOURCE_LAUNCH,
            tool_link_id=tool_link.id,
            resource_id=resource_id,
            client_id=tool.client_id,
        )
        return self._build(tool, user_id, tool_link.url, hint)

    async def launch_deep_linking(self, client_id: str, user_id: str) -> LoginInitiationRequest:
        """Start a deep-linking launch of the Tool ``client_id`` for ``user_id``."""
        tool = await self._get_tool(client_id)
        target_link_uri = tool.deep_linking_url or tool.url
        if not target_link_uri:
            raise LaunchInitiationError("MISSING_TARGET_LINK_URI", "Tool has no deep-linking URL")

        hint = LaunchHint(
            message_type=MessageType.DEEPLINKING_LAUNCH,
            client_id=tool.client_id,
        )
        return self._build(tool, user_id, target_link_uri, hint)

    async def _get_tool(self, client_id: str) -> ToolConfig:
        tool = await self.registry.get_tool(client_id)
        if tool is None:
            raise LaunchInitiationError("TOOL_NOT_FOUND", details={"client_id": client_id})
        if not tool.login_url:
            raise LaunchInitiationError("MISSING_LOGIN_URL", "Tool has no login initiation URL")
        return tool

    def _build(self, tool: ToolConfig, user_id: str, target_link_uri: str,
               hint: LaunchHint) -> LoginInitiationRequest:
        request = LoginInitiationRequest(
            url=tool.login_url,
            params={
                "iss": self.config.consumer_url,
                "login_hint": user_id,
                "target_link_uri": target_link_uri,
                "lti_message_hint": self.hint_codec.encode(hint),
                "client_id": tool.client_id,
                "lti_deployment_id": tool.deployment_id,
            },
        )
        self.logger.info(
            "Launch initiated",
            client_id=tool.client_id,
            message_type=hint.message_type.value
        )
        return request


def render_login_form(request: LoginInitiationRequest) -> str:
    """Self-submitting form POSTing the login initiation to the Tool."""
    fields = "".join(
        f'<input type="hidden" name="{html.escape(name)}" value="{html.escape(value)}"/>'
        for name, value in request.params.items()
    )
    return (
        f'<form id="lti_launch" style="display: none;" action="{html.escape(request.url)}" '
        f'method="POST">{fields}</form>'
        '<script>document.getElementById("lti_launch").submit()</script>'
    )
