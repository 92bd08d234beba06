"""
Service access tokens: the client credentials grant with a JWT-bearer
client assertion, and validation of the bearer tokens it issues.
"""

import time
from typing import Any, Mapping, Optional

from jose import jwt
from jose.exceptions import JWTError

from shared.logging import get_logger, set_tool_context
from shared.config import BaseConfig
from .. import claims as lti
from ..errors import TokenGrantError, TokenValidationError
from ..models import AccessTokenResponse, VerifiedAccessContext, get_scope_code
from ..registry import ToolRegistryBase
from ..urls import access_token_url
from ..validation.assertion import AssertionVerifier
from ..validation.deep_linking import audience_matches


ACCESS_TOKEN_ALGORITHM = "HS256"
ACCESS_TOKEN_LIFETIME = 3600


def parse_bearer_authorization(header: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer`` header."""
    if not header:
        raise TokenValidationError("MISSING_AUTHORIZATION_HEADER")
    parts = header.split(" ")
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
        return parts[1]
    raise TokenValidationError("INVALID_AUTHORIZATION_HEADER")


class AccessTokenService:
    """Issues and validates service access tokens.

    Tokens are self-contained, signed with the Consumer's own key and
    scoped to the access token endpoint by audience. They cannot be
    revoked before they expire.
    """

    def __init__(self, registry: ToolRegistryBase, verifier: AssertionVerifier, config: BaseConfig):
        self.registry = registry
        self.verifier = verifier
        self.config = config
        self._signing_key = config.encryption_key.get_secret_value()
        self.logger = get_logger("consumer.access_token")

    @property
    def audience(self) -> str:
        return access_token_url(self.config)

    def _reject_grant(self, code: str, message: Optional[str] = None, **details) -> TokenGrantError:
        self.logger.warning("Access token request rejected", reason=code, **details)
        return TokenGrantError(code, message, details or None)

    async def issue(self, body: Mapping[str, Any]) -> AccessTokenResponse:
        if body.get("grant_type") != lti.CLIENT_CREDENTIALS:
            raise self._reject_grant("INVALID_GRANT_TYPE")
        if body.get("client_assertion_type") != lti.JWT_BEARER_ASSERTION_TYPE:
            raise self._reject_grant("INVALID_ASSERTION_TYPE")

        assertion = body.get("client_assertion")
        if not assertion:
            raise self._reject_grant("MISSING_ASSERTION")
        try:
            header = jwt.get_unverified_header(assertion)
            unverified = jwt.get_unverified_claims(assertion)
        except JWTError as e:
            raise self._reject_grant("INVALID_ASSERTION", str(e))

        subject = unverified.get("sub")
        tool = await self.registry.get_tool(subject) if isinstance(subject, str) else None
        if tool is None:
            raise self._reject_grant("INVALID_CLIENT_ID")
        set_tool_context(client_id=tool.client_id)

        scope = body.get("scope")
        requested_scopes = scope.split() if isinstance(scope, str) else []
        if not requested_scopes:
            raise self._reject_grant("MISSING_SCOPE")
        scope = " ".join(requested_scopes)
        for requested in requested_scopes:
            code = get_scope_code(requested)
            if code is None or code not in tool.scopes:
                raise self._reject_grant(
                    "INVALID_SCOPE",
                    f"Invalid or unauthorized scope: {requested}",
                    scope=requested
                )

        if not audience_matches(unverified.get("aud"), self.audience):
            raise self._reject_grant("INVALID_AUDIENCE")

        await self.verifier.verify(assertion, tool, header.get("alg"), header.get("kid"))

        now = int(time.time())
        claims = {
            "sub": tool.client_id,
            "clientId": tool.client_id,
            "scopes": scope,
            "aud": self.audience,
            "iat": now,
            "exp": now + ACCESS_TOKEN_LIFETIME,
        }
        access_token = jwt.encode(claims, self._signing_key, algorithm=ACCESS_TOKEN_ALGORITHM)

        self.logger.info("Access token issued", scope=scope)
        return AccessTokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=ACCESS_TOKEN_LIFETIME,
            scope=scope
        )

    async def validate(self, token: Optional[str], required_scope: str) -> VerifiedAccessContext:
        """Check a bearer token for ``required_scope`` (a scope URL)."""
        if not token:
            raise TokenValidationError("INVALID_ACCESS_TOKEN")
        try:
            claims = jwt.decode(
                token,
                self._signing_key,
                algorithms=[ACCESS_TOKEN_ALGORITHM],
                audience=self.audience
            )
        except JWTError as e:
            self.logger.warning("Access token rejected", reason="INVALID_ACCESS_TOKEN", error=str(e))
            raise TokenValidationError("INVALID_ACCESS_TOKEN")

        if claims.get("aud") != self.audience or not isinstance(claims.get("clientId"), str):
            raise TokenValidationError("INVALID_ACCESS_TOKEN")

        invalid_scope = f"Invalid or unauthorized scope: {required_scope}"
        granted = str(claims.get("scopes", "")).split()
        if required_scope not in granted:
            raise TokenValidationError("INVALID_SCOPE", invalid_scope, {"scope": required_scope})

        tool = await self.registry.get_tool(claims["clientId"])
        if tool is None:
            raise TokenValidationError("TOOL_NOT_FOUND")
        set_tool_context(client_id=tool.client_id)

        code = get_scope_code(required_scope)
        if code is None or code not in tool.scopes:
            raise TokenValidationError("INVALID_SCOPE", invalid_scope, {"scope": required_scope})

        return VerifiedAccessContext(
            client_id=tool.client_id,
            scopes=granted,
            privacy=tool.privacy,
            claims=claims
        )
