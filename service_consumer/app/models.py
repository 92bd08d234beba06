"""
Data models for the Consumer service.
"""

from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """LTI message types."""
    RESOURCE_LAUNCH = "LtiResourceLinkRequest"
    DEEPLINKING_LAUNCH = "LtiDeepLinkingRequest"
    DEEPLINKING_RESPONSE = "LtiDeepLinkingResponse"


class ServiceKind(str, Enum):
    """Service a validated request is routed to."""
    CORE = "CORE"
    DEEPLINKING = "DEEPLINKING"
    MEMBERSHIPS = "MEMBERSHIPS"


class PrivacyLevel(str, Enum):
    """Which personal claims a Tool receives."""
    INHERIT = "INHERIT"
    NONE = "NONE"
    NAME = "NAME"
    EMAIL = "EMAIL"
    COMPLETE = "COMPLETE"

    @property
    def shares_email(self) -> bool:
        return self in (PrivacyLevel.EMAIL, PrivacyLevel.COMPLETE)

    @property
    def shares_name(self) -> bool:
        return self in (PrivacyLevel.NAME, PrivacyLevel.COMPLETE)


class AuthMethod(str, Enum):
    """Key distribution strategies a Tool may register."""
    JWK_SET = "JWK_SET"
    JWK_KEY = "JWK_KEY"
    RSA_KEY = "RSA_KEY"


class NonceInsertResult(str, Enum):
    """Outcome of an atomic nonce insert."""
    INSERTED = "inserted"
    ALREADY_PRESENT = "already_present"


# Scope codes granted to Tools and the IMS scope URLs they stand for
SCOPES: Dict[str, str] = {
    "LINEITEM": "https://purl.imsglobal.org/spec/lti-ags/scope/lineitem",
    "LINEITEM_READONLY": "https://purl.imsglobal.org/spec/lti-ags/scope/lineitem.readonly",
    "RESULT_READONLY": "https://purl.imsglobal.org/spec/lti-ags/scope/result.readonly",
    "SCORE": "https://purl.imsglobal.org/spec/lti-ags/scope/score",
    "MEMBERSHIPS": "https://purl.imsglobal.org/spec/lti-nrps/scope/contextmembership.readonly",
}


def get_scope_code(value: str) -> Optional[str]:
    """Find the scope code for a scope URL."""
    for code, url in SCOPES.items():
        if url == value:
            return code
    return None


@dataclass(frozen=True)
class JwkSetRef:
    """Keys are published by the Tool at a JWK set URL."""
    url: Optional[str]


@dataclass(frozen=True)
class StaticJwk:
    """A single registered JWK, as a mapping or its JSON text."""
    jwk: Optional[Union[Dict[str, Any], str]]


@dataclass(frozen=True)
class StaticRawKey:
    """A registered PEM encoded public key."""
    key: Optional[str]


AuthConfig = Union[JwkSetRef, StaticJwk, StaticRawKey]


def auth_config_from_dict(data: Optional[Dict[str, Any]]) -> Optional[AuthConfig]:
    """Parse a ``{"method": ..., "key": ...}`` mapping.

    Returns None for a missing mapping or an unknown method, which key
    resolution reports as AUTH_CONFIG_NOT_FOUND.
    """
    if not data:
        return None

    method = data.get("method")
    key = data.get("key")
    if method == AuthMethod.JWK_SET.value:
        return JwkSetRef(url=key)
    if method == AuthMethod.JWK_KEY.value:
        return StaticJwk(jwk=key)
    if method == AuthMethod.RSA_KEY.value:
        return StaticRawKey(key=key)
    return None


@dataclass
class ToolConfig:
    """Registered Tool."""
    client_id: str
    name: str
    deployment_id: str
    redirect_uris: List[str] = field(default_factory=list)
    auth_config: Optional[AuthConfig] = None
    scopes: List[str] = field(default_factory=list)
    privacy: PrivacyLevel = PrivacyLevel.NONE
    custom_parameters: Dict[str, Any] = field(default_factory=dict)
    private_key: Optional[str] = None
    kid: Optional[str] = None
    url: Optional[str] = None
    login_url: Optional[str] = None
    deep_linking_url: Optional[str] = None


@dataclass
class ToolLinkConfig:
    """A launchable link bound to a Tool."""
    id: str
    client_id: str
    url: str
    name: Optional[str] = None
    privacy: PrivacyLevel = PrivacyLevel.INHERIT
    custom_parameters: Dict[str, Any] = field(default_factory=dict)

    def effective_privacy(self, tool: ToolConfig) -> PrivacyLevel:
        if self.privacy == PrivacyLevel.INHERIT:
            return tool.privacy
        return self.privacy


@dataclass(frozen=True)
class LaunchHint:
    """Transient launch state carried inside lti_message_hint."""
    message_type: MessageType
    tool_link_id: Optional[str] = None
    resource_id: Optional[str] = None
    client_id: Optional[str] = None
    dl_state: Optional[str] = None


@dataclass
class LaunchIntent:
    """Normalized result of a valid login request. Never persisted."""
    service: ServiceKind
    client_id: str
    deployment_id: str
    user: str
    message_type: MessageType
    redirect_uri: str
    tool_link_id: Optional[str] = None
    resource_id: Optional[str] = None
    state: Optional[str] = None
    dl_state: Optional[str] = None


@dataclass
class DeepLinkingResult:
    """Content selected by a Tool in a deep-linking response."""
    client_id: str
    deployment_id: Optional[str]
    content_items: Optional[List[Dict[str, Any]]] = None
    message: Optional[str] = None
    log: Optional[str] = None
    error: Optional[str] = None
    error_log: Optional[str] = None
    context_id: Optional[str] = None
    dl_state: Optional[str] = None
    service: ServiceKind = ServiceKind.DEEPLINKING


@dataclass
class VerifiedAccessContext:
    """Caller of a service endpoint, as proven by its access token."""
    client_id: str
    scopes: List[str]
    privacy: PrivacyLevel
    claims: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MembershipsRequest:
    """Names and roles request handed to the memberships callback."""
    endpoint: str
    client_id: str
    privacy: PrivacyLevel
    context_id: str
    role: Optional[str] = None
    limit: Optional[str] = None
    next: Optional[str] = None
    service: ServiceKind = ServiceKind.MEMBERSHIPS


class LaunchUser(BaseModel):
    """User attributes supplied by the launch callback."""
    model_config = ConfigDict(extra="allow")

    roles: List[str] = Field(default_factory=list, description="LTI role URIs")
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    name: Optional[str] = None


class LaunchContextClaim(BaseModel):
    """Course or other context the launch happens in."""
    id: Optional[str] = None
    label: Optional[str] = None
    title: Optional[str] = None
    type: Optional[List[str]] = None


class LaunchData(BaseModel):
    """Context and resource of a launch."""
    context: LaunchContextClaim = Field(default_factory=LaunchContextClaim)
    resource: Optional[Dict[str, Any]] = Field(None, description="Resource link claim")


class IdTokenData(BaseModel):
    """Identity data used to build an ID Token."""
    user: LaunchUser = Field(default_factory=LaunchUser)
    launch: LaunchData = Field(default_factory=LaunchData)


class AccessTokenResponse(BaseModel):
    """Response of the client credentials grant."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    scope: str
