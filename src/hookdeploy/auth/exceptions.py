"""Custom exceptions for the Request Authenticator."""


class AuthenticationError(Exception):
    """Notification could not be authenticated for an application.

    Covers missing or bad signatures and tokens, source IP mismatches,
    failed builds, filtered branches and malformed payloads.
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.message = message
