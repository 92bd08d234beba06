"""
Unit tests for IdentityTokenBuilder.
"""

import pytest
from urllib.parse import urlsplit, parse_qs

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from jose import jwt

from shared.test_helpers import create_test_config, generate_key_pair
from service_consumer.app import claims as lti
from service_consumer.app.errors import IdTokenBuildError
from service_consumer.app.models import (
    LaunchIntent, MessageType, PrivacyLevel, ServiceKind,
)
from service_consumer.app.registry import InMemoryToolRegistry
from service_consumer.app.tokens.id_token import IdentityTokenBuilder, render_id_token_form


def resource_intent(**overrides):
    values = dict(
        service=ServiceKind.CORE,
        client_id="tool-1",
        deployment_id="deployment-1",
        user="user-42",
        message_type=MessageType.RESOURCE_LAUNCH,
        redirect_uri="https://tool.example.com/launch",
        tool_link_id="link-1",
        resource_id="res-1",
        state="state-abc",
    )
    values.update(overrides)
    return LaunchIntent(**values)


def deep_linking_intent(**overrides):
    values = dict(
        service=ServiceKind.DEEPLINKING,
        client_id="tool-1",
        deployment_id="deployment-1",
        user="user-42",
        message_type=MessageType.DEEPLINKING_LAUNCH,
        redirect_uri="https://tool.example.com/launch",
        dl_state="f" * 32,
    )
    values.update(overrides)
    return LaunchIntent(**values)


def decode_as_tool(token, client_id="tool-1"):
    keys = generate_key_pair(f"{client_id}-key")
    return jwt.decode(token, keys.public_pem, algorithms=["RS256"], audience=client_id)


@pytest.fixture
def builder(registry, config):
    return IdentityTokenBuilder(registry, config)


class TestResourceLaunch:
    """ID Tokens for resource launches."""

    @pytest.mark.asyncio
    async def test_core_claims(self, builder, id_token_data):
        token = await builder.build(resource_intent(), id_token_data)
        claims = decode_as_tool(token)

        assert claims["iss"] == "https://platform.example.com"
        assert claims["aud"] == "tool-1"
        assert claims["sub"] == "user-42"
        assert claims[lti.MESSAGE_TYPE] == "LtiResourceLinkRequest"
        assert claims[lti.DEPLOYMENT_ID] == "deployment-1"
        assert claims[lti.VERSION] == "1.3.0"
        assert claims[lti.ROLES] == id_token_data["user"]["roles"]
        assert claims[lti.CONTEXT]["id"] == "course-101"
        assert claims[lti.TARGET_LINK_URI] == "https://tool.example.com/resource/1"
        assert claims[lti.RESOURCE_LINK] == {"id": "resource-1", "title": "Week 1"}
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60
        assert claims["nonce"]

    @pytest.mark.asyncio
    async def test_signed_with_tool_key_id(self, builder, id_token_data):
        token = await builder.build(resource_intent(), id_token_data)

        header = jwt.get_unverified_header(token)
        assert header["alg"] == "RS256"
        assert header["kid"] == "tool-1-key"

    @pytest.mark.asyncio
    async def test_fresh_nonce_per_token(self, builder, id_token_data):
        first = decode_as_tool(await builder.build(resource_intent(), id_token_data))
        second = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert first["nonce"] != second["nonce"]

    @pytest.mark.asyncio
    async def test_link_custom_parameters_override_tool(self, builder, id_token_data):
        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert claims[lti.CUSTOM] == {"level": "link", "tool_only": "yes"}

    @pytest.mark.asyncio
    async def test_resource_link_defaults_to_resource_id(self, builder, id_token_data):
        id_token_data["launch"]["resource"] = None

        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert claims[lti.RESOURCE_LINK] == {"id": "res-1"}

    @pytest.mark.asyncio
    async def test_inherited_privacy_uses_tool_level(self, builder, id_token_data):
        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert claims["email"] == "ada@example.com"
        assert claims["name"] == "Ada Lovelace"
        assert claims["given_name"] == "Ada"
        assert claims["family_name"] == "Lovelace"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("privacy,present,absent", [
        (PrivacyLevel.EMAIL, {"email"}, {"given_name", "family_name", "name"}),
        (PrivacyLevel.NAME, {"given_name", "family_name", "name"}, {"email"}),
        (PrivacyLevel.COMPLETE, {"email", "given_name", "family_name", "name"}, set()),
        (PrivacyLevel.NONE, set(), {"email", "given_name", "family_name", "name"}),
    ])
    async def test_link_privacy_gates_personal_claims(self, config, tool, make_tool_link, id_token_data,
                                                      privacy, present, absent):
        registry = InMemoryToolRegistry(tools=[tool], tool_links=[make_tool_link(privacy=privacy.value)])
        builder = IdentityTokenBuilder(registry, config)

        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert present <= set(claims)
        assert not absent & set(claims)

    @pytest.mark.asyncio
    async def test_names_and_roles_claim(self, builder, id_token_data):
        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert claims[lti.NAMES_ROLE_SERVICE] == {
            "context_memberships_url": "https://platform.example.com/memberships/course-101",
            "service_versions": ["2.0"],
        }

    @pytest.mark.asyncio
    async def test_no_names_and_roles_without_scope(self, config, make_tool, tool_link, id_token_data):
        registry = InMemoryToolRegistry(tools=[make_tool(scopes=["SCORE"])], tool_links=[tool_link])
        builder = IdentityTokenBuilder(registry, config)

        claims = decode_as_tool(await builder.build(resource_intent(), id_token_data))

        assert lti.NAMES_ROLE_SERVICE not in claims

    @pytest.mark.asyncio
    async def test_unknown_tool_link(self, builder, id_token_data):
        with pytest.raises(IdTokenBuildError) as exc_info:
            await builder.build(resource_intent(tool_link_id="missing"), id_token_data)

        assert exc_info.value.code == "INVALID_TOOL_LINK_ID"

    @pytest.mark.asyncio
    async def test_tool_link_of_another_tool(self, config, tool, make_tool, make_tool_link, id_token_data):
        registry = InMemoryToolRegistry(
            tools=[tool, make_tool(client_id="tool-2")],
            tool_links=[make_tool_link(link_id="link-2", client_id="tool-2")]
        )
        builder = IdentityTokenBuilder(registry, config)

        with pytest.raises(IdTokenBuildError) as exc_info:
            await builder.build(resource_intent(tool_link_id="link-2"), id_token_data)

        assert exc_info.value.code == "INVALID_TOOL_LINK_ID"


class TestDeepLinkingLaunch:
    """ID Tokens for deep-linking launches."""

    @pytest.mark.asyncio
    async def test_deep_linking_settings(self, builder, id_token_data):
        claims = decode_as_tool(await builder.build(deep_linking_intent(), id_token_data))

        assert claims[lti.MESSAGE_TYPE] == "LtiDeepLinkingRequest"
        assert claims[lti.CUSTOM] == {"level": "tool", "tool_only": "yes"}
        assert lti.TARGET_LINK_URI not in claims

        settings = claims[lti.DEEP_LINKING_SETTINGS]
        assert settings["accept_types"] == ["ltiResourceLink"]
        assert settings["accept_presentation_document_targets"] == ["iframe", "window"]
        assert settings["accept_multiple"] is False
        assert settings["auto_create"] is False
        assert settings["title"] == "Test Tool"

        return_url = urlsplit(settings["deep_link_return_url"])
        assert return_url.netloc == "platform.example.com"
        assert return_url.path == "/deeplinking"
        assert parse_qs(return_url.query) == {"contextId": ["course-101"], "dlState": ["f" * 32]}

    @pytest.mark.asyncio
    async def test_tool_privacy_applies(self, config, make_tool, id_token_data):
        registry = InMemoryToolRegistry(tools=[make_tool(privacy="EMAIL")])
        builder = IdentityTokenBuilder(registry, config)

        claims = decode_as_tool(await builder.build(deep_linking_intent(), id_token_data))

        assert claims["email"] == "ada@example.com"
        assert "name" not in claims

    @pytest.mark.asyncio
    async def test_endpoints_drop_consumer_url_path(self, registry, id_token_data):
        builder = IdentityTokenBuilder(registry, create_test_config(consumer_url="https://platform.example.com/lti/"))

        claims = decode_as_tool(await builder.build(deep_linking_intent(), id_token_data))

        assert claims["iss"] == "https://platform.example.com/lti"
        assert claims[lti.DEEP_LINKING_SETTINGS]["deep_link_return_url"].startswith(
            "https://platform.example.com/deeplinking?"
        )


class TestBuildFailures:
    """Missing inputs."""

    @pytest.mark.asyncio
    async def test_missing_intent(self, builder, id_token_data):
        with pytest.raises(IdTokenBuildError) as exc_info:
            await builder.build(None, id_token_data)
        assert exc_info.value.code == "MISSING_LAUNCH_INTENT"

    @pytest.mark.asyncio
    async def test_missing_identity_data(self, builder):
        with pytest.raises(IdTokenBuildError) as exc_info:
            await builder.build(resource_intent(), None)
        assert exc_info.value.code == "MISSING_IDENTITY_DATA"

    @pytest.mark.asyncio
    async def test_tool_no_longer_registered(self, builder, id_token_data):
        with pytest.raises(IdTokenBuildError) as exc_info:
            await builder.build(resource_intent(client_id="removed-tool"), id_token_data)
        assert exc_info.value.code == "INVALID_CLIENT_ID"

    @pytest.mark.asyncio
    async def test_tool_without_signing_key(self, config, make_tool, tool_link, id_token_data):
        registry = InMemoryToolRegistry(tools=[make_tool(private_key=None)], tool_links=[tool_link])

        with pytest.raises(IdTokenBuildError) as exc_info:
            await IdentityTokenBuilder(registry, config).build(resource_intent(), id_token_data)
        assert exc_info.value.code == "MISSING_SIGNING_KEY"


def test_form_posts_token_and_state():
    form = render_id_token_form(resource_intent(state='a"b<c'), "header.payload.signature")

    assert 'action="https://tool.example.com/launch"' in form
    assert 'method="POST"' in form
    assert 'name="id_token" value="header.payload.signature"' in form
    assert 'name="state" value="a&quot;b&lt;c"' in form
    assert "submit()" in form


def test_form_without_state():
    form = render_id_token_form(resource_intent(state=None), "token")

    assert 'name="state"' not in form
