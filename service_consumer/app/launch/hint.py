"""
Self-signed launch hints.

The hint travels to the Tool inside ``lti_message_hint`` and comes back
unchanged in the login request, so the login step needs no server-side
session. It is signed with the Consumer's own key and expires.
"""

import time
from typing import Dict, Any, Optional

from jose import jwt
from jose.exceptions import JWTError

from shared.config import BaseConfig
from ..errors import InvalidLaunchHintError
from ..models import LaunchHint, MessageType


HINT_ALGORITHM = "HS256"
HINT_AUDIENCE = "lti_message_hint"


class LaunchHintCodec:
    """Encodes and decodes launch hints."""

    def __init__(self, signing_key: str, ttl: Optional[int] = 600):
        self._signing_key = signing_key
        self.ttl = ttl

    @classmethod
    def from_config(cls, config: BaseConfig) -> "LaunchHintCodec":
        return cls(config.encryption_key.get_secret_value(), config.launch_hint_ttl)

    def encode(self, hint: LaunchHint) -> str:
        now = int(time.time())
        claims: Dict[str, Any] = {
            "message_type": hint.message_type.value,
            "aud": HINT_AUDIENCE,
            "iat": now,
        }
        if self.ttl:
            claims["exp"] = now + self.ttl

        for name in ("tool_link_id", "resource_id", "client_id", "dl_state"):
            value = getattr(hint, name)
            if value is not None:
                claims[name] = value

        return jwt.encode(claims, self._signing_key, algorithm=HINT_ALGORITHM)

    def decode(self, token: str) -> LaunchHint:
        try:
            claims = jwt.decode(
                token,
                self._signing_key,
                algorithms=[HINT_ALGORITHM],
                audience=HINT_AUDIENCE
            )
        except JWTError as e:
            raise InvalidLaunchHintError(str(e))

        # jose skips the audience check when the claim is absent
        if claims.get("aud") != HINT_AUDIENCE:
            raise InvalidLaunchHintError("Token is not a launch hint")

        try:
            message_type = MessageType(claims.get("message_type"))
        except ValueError:
            raise InvalidLaunchHintError("Launch hint carries no message type")

        return LaunchHint(
            message_type=message_type,
            tool_link_id=claims.get("tool_link_id"),
            resource_id=claims.get("resource_id"),
            client_id=claims.get("client_id"),
            dl_state=claims.get("dl_state"),
        )
