"""
Launch package.

Starting a launch: the self-signed lti_message_hint that keeps the login
step stateless, and the third-party-initiated login request sent to a Tool.
"""
