"""
Validation of deep-linking responses sent back by Tools.
"""

from typing import Any, Mapping

from jose import jwt
from jose.exceptions import JWTError

from shared.logging import get_logger, set_tool_context
from shared.config import BaseConfig
from .. import claims as lti
from ..errors import DeepLinkingValidationError
from ..models import DeepLinkingResult, MessageType
from ..nonce.ledger import NonceLedgerBase
from ..registry import ToolRegistryBase
from .assertion import AssertionVerifier


def _normalise_audience(value: Any) -> Any:
    return value.rstrip("/") if isinstance(value, str) else value


def audience_matches(aud: Any, expected: str) -> bool:
    """``aud`` may be a single value or a list of values.

    A trailing slash is not significant: the configured consumer URL is
    stored without one.
    """
    expected = _normalise_audience(expected)
    if isinstance(aud, list):
        return expected in [_normalise_audience(value) for value in aud]
    return _normalise_audience(aud) == expected


class DeepLinkingResponseValidator:
    """Verifies a Tool's deep-linking response and extracts its content."""

    def __init__(self, registry: ToolRegistryBase, verifier: AssertionVerifier,
                 nonce_ledger: NonceLedgerBase, config: BaseConfig):
        self.registry = registry
        self.verifier = verifier
        self.nonce_ledger = nonce_ledger
        self.config = config
        self.logger = get_logger("consumer.deep_linking")

    def _reject(self, code: str, message: str = "") -> DeepLinkingValidationError:
        self.logger.warning("Deep-linking response rejected", reason=code)
        return DeepLinkingValidationError(code, message or None)

    async def validate(self, body: Mapping[str, Any], query: Mapping[str, Any]) -> DeepLinkingResult:
        token = body.get("JWT")
        if not token:
            raise self._reject("MISSING_JWT")

        try:
            header = jwt.get_unverified_header(token)
            unverified = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise self._reject("INVALID_JWT", str(e))

        issuer = unverified.get("iss")
        tool = await self.registry.get_tool(issuer) if isinstance(issuer, str) else None
        if tool is None:
            raise self._reject("TOOL_NOT_FOUND")
        set_tool_context(client_id=tool.client_id)

        self.logger.debug("Verifying deep-linking response signature")
        verified = await self.verifier.verify(token, tool, header.get("alg"), header.get("kid"))

        nonce = verified.get("nonce")
        if nonce and not await self.nonce_ledger.accept_once(nonce):
            raise self._reject("NONCE_ALREADY_RECEIVED")

        if not audience_matches(verified.get("aud"), self.config.consumer_url):
            raise self._reject("INVALID_AUDIENCE")
        if verified.get(lti.DEPLOYMENT_ID) != tool.deployment_id:
            raise self._reject("INVALID_DEPLOYMENT_ID")
        if verified.get(lti.MESSAGE_TYPE) != MessageType.DEEPLINKING_RESPONSE.value:
            raise self._reject("INVALID_MESSAGE_TYPE")
        if verified.get(lti.VERSION) != lti.LTI_VERSION:
            raise self._reject("INVALID_VERSION")

        result = DeepLinkingResult(
            client_id=tool.client_id,
            deployment_id=verified.get(lti.DEPLOYMENT_ID),
            content_items=verified.get(lti.CONTENT_ITEMS),
            message=verified.get(lti.DL_MESSAGE),
            log=verified.get(lti.DL_LOG),
            error=verified.get(lti.DL_ERROR_MESSAGE),
            error_log=verified.get(lti.DL_ERROR_LOG),
            context_id=query.get("contextId"),
            dl_state=query.get("dlState"),
        )

        self.logger.info(
            "Deep-linking response accepted",
            content_items=len(result.content_items or [])
        )
        return result
