"""
auth/exceptions.py -- Error taxonomy for token signing, parsing and login.

TokenError subclasses are raised by the claims codec and are always recovered
by the verifier, which turns them into a redirect to the login page. The
client never learns which check failed; the server log does.

InvalidCredentials carries one message for both a wrong username and a wrong
password so the login form cannot be used to enumerate usernames.

SigningFailure means the signing key is unusable. It is a configuration fault
and is not caught anywhere below the app's generic exception handler.
"""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class TokenError(GatewayError):
    """A token could not be verified."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class UnsupportedAlgorithm(TokenError):
    pass


class InvalidCredentials(GatewayError):
    def __init__(self) -> None:
        super().__init__("Invalid username or password.")


class SigningFailure(GatewayError):
    pass
