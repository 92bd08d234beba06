"""
Token package.

Tokens the Consumer signs: ID Tokens delivered to Tools at launch, and
service access tokens issued through the client credentials grant.
"""
