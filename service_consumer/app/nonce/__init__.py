"""
Nonce ledger package.

Single-use nonce bookkeeping for login requests and deep-linking
responses. Every implementation inserts atomically: two concurrent
presentations of the same nonce never both succeed.
"""
