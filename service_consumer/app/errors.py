"""
Errors raised by the Consumer security core.

Every error carries the named reason as its ``code``. The category
follows from the reason, so callers only pass the reason.
"""

from typing import Dict, Any, Optional

from shared.errors import ConsumerException, ErrorCategory


REASON_CATEGORIES: Dict[str, ErrorCategory] = {
    # Key resolution and signatures
    "KEYSET_UNAVAILABLE": ErrorCategory.TRANSPORT,
    "KEY_NOT_FOUND": ErrorCategory.AUTHENTICATION,
    "AUTH_CONFIG_NOT_FOUND": ErrorCategory.AUTHENTICATION,
    "INVALID_ALGORITHM": ErrorCategory.AUTHENTICATION,
    "INVALID_SIGNATURE": ErrorCategory.AUTHENTICATION,
    "INVALID_MESSAGE_HINT": ErrorCategory.AUTHENTICATION,
    # Replay
    "NONCE_ALREADY_RECEIVED": ErrorCategory.REPLAY,
    "NONCE_LEDGER_UNAVAILABLE": ErrorCategory.TRANSPORT,
    # Unknown callers
    "UNKNOWN_CLIENT": ErrorCategory.AUTHENTICATION,
    "INVALID_CLIENT_ID": ErrorCategory.AUTHENTICATION,
    "TOOL_NOT_FOUND": ErrorCategory.AUTHENTICATION,
    "INVALID_ACCESS_TOKEN": ErrorCategory.AUTHENTICATION,
    # Registered values that do not match
    "INVALID_DEPLOYMENT_ID": ErrorCategory.AUTHORIZATION,
    "INVALID_REDIRECT_URI": ErrorCategory.AUTHORIZATION,
    "INVALID_AUDIENCE": ErrorCategory.AUTHORIZATION,
    "INVALID_TOOL_LINK_ID": ErrorCategory.AUTHORIZATION,
    "MISSING_SIGNING_KEY": ErrorCategory.INTERNAL,
}


class LtiError(ConsumerException):
    """Base class for named-reason failures."""

    # Per-class category overrides for reasons shared between validators
    category_overrides: Dict[str, ErrorCategory] = {}

    def __init__(self, code: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        category = self.category_overrides.get(
            code, REASON_CATEGORIES.get(code, ErrorCategory.MALFORMED_INPUT)
        )
        super().__init__(code, message, details, category)


class KeyResolutionError(LtiError):
    """No verification key could be produced for a Tool."""


class InvalidSignatureError(LtiError):
    """A Tool assertion failed cryptographic verification."""


class InvalidLaunchHintError(LtiError):
    """lti_message_hint was not issued by this Consumer or has expired."""

    def __init__(self, message: Optional[str] = None):
        super().__init__("INVALID_MESSAGE_HINT", message)


class NonceLedgerError(LtiError):
    """The nonce store could not be reached."""

    def __init__(self, message: Optional[str] = None):
        super().__init__("NONCE_LEDGER_UNAVAILABLE", message)


class LoginValidationError(LtiError):
    """Login request rejected."""


class DeepLinkingValidationError(LtiError):
    """Deep-linking response rejected."""


class IdTokenBuildError(LtiError):
    """ID Token could not be built."""


class TokenGrantError(LtiError):
    """Access token request rejected."""

    category_overrides = {"INVALID_SCOPE": ErrorCategory.AUTHORIZATION}


class TokenValidationError(LtiError):
    """Bearer access token rejected."""

    category_overrides = {"INVALID_SCOPE": ErrorCategory.AUTHORIZATION}


class LaunchInitiationError(LtiError):
    """A launch could not be started for the requested link or Tool."""
