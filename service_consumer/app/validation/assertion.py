"""
Signature verification of Tool-signed assertions.
"""

from typing import Dict, Any, Optional

from jose import jwt, jwk
from jose.exceptions import JOSEError, ExpiredSignatureError, JWTError

from shared.logging import get_logger
from ..errors import InvalidSignatureError
from ..keys.resolver import KeyResolver
from ..models import ToolConfig


# Tools sign with their own asymmetric keys; "none" and HMAC are refused
ASYMMETRIC_ALGORITHMS = frozenset({
    "RS256", "RS384", "RS512",
    "ES256", "ES384", "ES512",
})


class AssertionVerifier:
    """Verifies a compact JWS against the key registered for its Tool."""

    def __init__(self, key_resolver: KeyResolver):
        self.key_resolver = key_resolver
        self.logger = get_logger("consumer.assertion")

    async def verify(self, token: str, tool: ToolConfig, algorithm: Optional[str],
                     key_id: Optional[str]) -> Dict[str, Any]:
        """Verify signature and time claims and return the claims.

        ``algorithm`` and ``key_id`` come from an unverified read of the
        token header. Audience is checked by the caller.
        """
        if not algorithm or algorithm not in ASYMMETRIC_ALGORITHMS:
            self.logger.warning("Rejected assertion algorithm", algorithm=algorithm, client_id=tool.client_id)
            raise InvalidSignatureError("INVALID_ALGORITHM", f"Algorithm not accepted: {algorithm}")

        key_material = await self.key_resolver.resolve_key(tool.auth_config, key_id)

        if isinstance(key_material, dict) and key_material.get("alg") not in (None, algorithm):
            raise InvalidSignatureError(
                "INVALID_ALGORITHM",
                f"Key is registered for {key_material.get('alg')}, token uses {algorithm}"
            )

        try:
            key = jwk.construct(key_material, algorithm)
        except JOSEError as e:
            self.logger.warning("Key does not match algorithm", algorithm=algorithm, error=str(e))
            raise InvalidSignatureError("INVALID_ALGORITHM", f"Registered key cannot verify {algorithm}")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[algorithm],
                options={"verify_aud": False}
            )
        except ExpiredSignatureError:
            raise InvalidSignatureError("INVALID_SIGNATURE", "Assertion has expired")
        except JWTError as e:
            self.logger.warning("Assertion verification failed", client_id=tool.client_id, error=str(e))
            raise InvalidSignatureError("INVALID_SIGNATURE", str(e))

        self.logger.debug("Assertion verified", client_id=tool.client_id, kid=key_id)
        return claims
