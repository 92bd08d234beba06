"""
Key resolution package.

Turns a Tool's registered authentication configuration and a token's
key id into verification key material. Three strategies exist: a remote
JWK set fetched by kid, a single registered JWK and a registered PEM key.

Remote fetches are bounded by a timeout and guarded by a circuit breaker;
failures surface as retryable KEYSET_UNAVAILABLE errors and are never
retried here.
"""
