"""
Unit tests for LaunchHintCodec.
"""

import time
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from jose import jwt

from shared.test_helpers import ENCRYPTION_KEY
from service_consumer.app.errors import InvalidLaunchHintError
from service_consumer.app.launch.hint import LaunchHintCodec
from service_consumer.app.models import LaunchHint, MessageType


class TestLaunchHintCodec:
    """Test cases for LaunchHintCodec."""

    @pytest.mark.parametrize("hint", [
        LaunchHint(MessageType.RESOURCE_LAUNCH, tool_link_id="link-1", resource_id="res-9"),
        LaunchHint(MessageType.DEEPLINKING_LAUNCH, client_id="tool-1"),
        LaunchHint(MessageType.DEEPLINKING_LAUNCH, client_id="tool-1", dl_state="abc123"),
    ])
    def test_round_trip(self, hint_codec, hint):
        assert hint_codec.decode(hint_codec.encode(hint)) == hint

    def test_token_is_opaque_signed_jwt(self, hint_codec):
        token = hint_codec.encode(LaunchHint(MessageType.RESOURCE_LAUNCH, tool_link_id="link-1"))

        assert jwt.get_unverified_header(token)["alg"] == "HS256"
        assert jwt.get_unverified_claims(token)["exp"] > time.time()

    def test_different_key_fails(self, hint_codec):
        token = hint_codec.encode(LaunchHint(MessageType.RESOURCE_LAUNCH, tool_link_id="link-1"))

        with pytest.raises(InvalidLaunchHintError) as exc_info:
            LaunchHintCodec("another-key").decode(token)

        assert exc_info.value.code == "INVALID_MESSAGE_HINT"

    def test_expired_hint_fails(self):
        codec = LaunchHintCodec(ENCRYPTION_KEY, ttl=1)
        token = codec.encode(LaunchHint(MessageType.RESOURCE_LAUNCH, tool_link_id="link-1"))
        claims = jwt.get_unverified_claims(token)
        claims["exp"] = int(time.time()) - 10
        expired = jwt.encode(claims, ENCRYPTION_KEY, algorithm="HS256")

        with pytest.raises(InvalidLaunchHintError):
            codec.decode(expired)

    def test_without_ttl_has_no_expiry(self):
        codec = LaunchHintCodec(ENCRYPTION_KEY, ttl=None)
        hint = LaunchHint(MessageType.RESOURCE_LAUNCH, tool_link_id="link-1")
        token = codec.encode(hint)

        assert "exp" not in jwt.get_unverified_claims(token)
        assert codec.decode(token) == hint

    @pytest.mark.parametrize("claims", [
        {"message_type": "LtiResourceLinkRequest"},
        {"message_type": "LtiResourceLinkRequest", "aud": "https://platform.example.com/accesstoken"},
        {"aud": "lti_message_hint"},
        {"aud": "lti_message_hint", "message_type": "SomethingElse"},
    ])
    def test_foreign_tokens_with_same_key_fail(self, hint_codec, claims):
        token = jwt.encode(claims, ENCRYPTION_KEY, algorithm="HS256")

        with pytest.raises(InvalidLaunchHintError):
            hint_codec.decode(token)

    def test_garbage_fails(self, hint_codec):
        with pytest.raises(InvalidLaunchHintError):
            hint_codec.decode("not-a-token")
