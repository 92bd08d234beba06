"""
Unit tests for LoginInitiator.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_consumer.app.errors import LaunchInitiationError
from service_consumer.app.launch.initiation import LoginInitiator, render_login_form
from service_consumer.app.models import MessageType
from service_consumer.app.registry import InMemoryToolRegistry


@pytest.fixture
def initiator(registry, hint_codec, config):
    return LoginInitiator(registry, hint_codec, config)


class TestLoginInitiator:
    """Test cases for LoginInitiator."""

    @pytest.mark.asyncio
    async def test_resource_launch(self, initiator, hint_codec):
        request = await initiator.launch_core("link-1", "user-42", resource_id="res-1")

        assert request.url == "https://tool.example.com/login"
        assert request.params["iss"] == "https://platform.example.com"
        assert request.params["login_hint"] == "user-42"
        assert request.params["target_link_uri"] == "https://tool.example.com/resource/1"
        assert request.params["client_id"] == "tool-1"
        assert request.params["lti_deployment_id"] == "deployment-1"

        hint = hint_codec.decode(request.params["lti_message_hint"])
        assert hint.message_type == MessageType.RESOURCE_LAUNCH
        assert hint.tool_link_id == "link-1"
        assert hint.resource_id == "res-1"

    @pytest.mark.asyncio
    async def test_deep_linking_launch(self, initiator, hint_codec):
        request = await initiator.launch_deep_linking("tool-1", "user-42")

        assert request.params["target_link_uri"] == "https://tool.example.com/deeplink"
        hint = hint_codec.decode(request.params["lti_message_hint"])
        assert hint.message_type == MessageType.DEEPLINKING_LAUNCH
        assert hint.client_id == "tool-1"

    @pytest.mark.asyncio
    async def test_deep_linking_falls_back_to_tool_url(self, make_tool, hint_codec, config):
        registry = InMemoryToolRegistry(tools=[make_tool(deep_linking_url=None)])

        request = await LoginInitiator(registry, hint_codec, config).launch_deep_linking("tool-1", "user-42")

        assert request.params["target_link_uri"] == "https://tool.example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tool_overrides,code", [
        ({"login_url": None}, "MISSING_LOGIN_URL"),
        ({"deep_linking_url": None, "url": None}, "MISSING_TARGET_LINK_URI"),
    ])
    async def test_incomplete_tool(self, make_tool, hint_codec, config, tool_overrides, code):
        registry = InMemoryToolRegistry(tools=[make_tool(**tool_overrides)])

        with pytest.raises(LaunchInitiationError) as exc_info:
            await LoginInitiator(registry, hint_codec, config).launch_deep_linking("tool-1", "user-42")

        assert exc_info.value.code == code

    @pytest.mark.asyncio
    async def test_unknown_link(self, initiator):
        with pytest.raises(LaunchInitiationError) as exc_info:
            await initiator.launch_core("missing", "user-42")

        assert exc_info.value.code == "INVALID_TOOL_LINK_ID"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, initiator):
        with pytest.raises(LaunchInitiationError) as exc_info:
            await initiator.launch_deep_linking("unknown-tool", "user-42")

        assert exc_info.value.code == "TOOL_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_login_form(self, initiator):
        form = render_login_form(await initiator.launch_core("link-1", 'user"42'))

        assert 'id="lti_launch"' in form
        assert 'action="https://tool.example.com/login"' in form
        assert 'name="login_hint" value="user&quot;42"' in form
        assert 'name="lti_message_hint"' in form
