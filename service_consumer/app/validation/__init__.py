"""
Validation package.

Validators for everything a Tool sends to the Consumer:

- assertion: signature verification of Tool-signed JWTs.
- login_request: the OIDC third-party-initiated login request.
- deep_linking: the deep-linking response message.

Validators fail fast on the first violated check with a named reason.
"""
