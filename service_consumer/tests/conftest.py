"""
Shared fixtures for Consumer service tests.
"""

import pytest
import sys
import os

# Add repository root to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.test_helpers import (
    ENCRYPTION_KEY, LtiDataFactory, MockAssertionGenerator, create_test_config,
)
from service_consumer.app.keys.resolver import KeyResolver
from service_consumer.app.launch.hint import LaunchHintCodec
from service_consumer.app.models import (
    PrivacyLevel, ToolConfig, ToolLinkConfig, auth_config_from_dict,
)
from service_consumer.app.nonce.ledger import InMemoryNonceLedger
from service_consumer.app.registry import InMemoryToolRegistry
from service_consumer.app.validation.assertion import AssertionVerifier


def build_tool(**overrides) -> ToolConfig:
    data = LtiDataFactory.create_tool(**overrides)
    data["auth_config"] = auth_config_from_dict(data["auth_config"])
    data["privacy"] = PrivacyLevel(data["privacy"])
    return ToolConfig(**data)


def build_tool_link(**overrides) -> ToolLinkConfig:
    data = LtiDataFactory.create_tool_link(**overrides)
    data["privacy"] = PrivacyLevel(data["privacy"])
    return ToolLinkConfig(**data)


@pytest.fixture
def config():
    return create_test_config()


@pytest.fixture
def tool():
    return build_tool()


@pytest.fixture
def tool_link():
    return build_tool_link()


@pytest.fixture
def registry(tool, tool_link):
    return InMemoryToolRegistry(tools=[tool], tool_links=[tool_link])


@pytest.fixture
def nonce_ledger():
    return InMemoryNonceLedger()


@pytest.fixture
def hint_codec():
    return LaunchHintCodec(ENCRYPTION_KEY, ttl=600)


@pytest.fixture
def key_resolver():
    return KeyResolver(cache_ttl=300)


@pytest.fixture
def verifier(key_resolver):
    return AssertionVerifier(key_resolver)


@pytest.fixture
def assertions():
    """Signs assertions as the registered Tool."""
    return MockAssertionGenerator("tool-1")


@pytest.fixture
def id_token_data():
    return LtiDataFactory.create_id_token_data()


@pytest.fixture
def make_tool():
    """Factory for additional Tool registrations."""
    return build_tool


@pytest.fixture
def make_tool_link():
    return build_tool_link
