"""
Consumer Service package.

This package holds the security core of an LTI 1.3 Advantage Platform
and the FastAPI application that exposes it:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.keys: Verification key resolution for Tool-signed assertions.
- app.validation: Assertion, login request and deep-linking validation.
- app.nonce: Single-use nonce ledger.
- app.launch: Launch hints and third-party-initiated login requests.
- app.tokens: ID Token issuance and service access tokens.

Module import must not perform network calls. All IO happens in route
handlers or explicit startup hooks.
"""
