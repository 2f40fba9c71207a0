"""
Custom exceptions for the social login and account-linking flow.

Every stage of a callback raises one of these, and the orchestrator
surfaces it unchanged to the caller. Each class carries the HTTP status
and the generic, client-safe message used when it reaches the browser;
the detailed message stays in the server log.

Exception Hierarchy:
    LinkingError (base)
    ├── ProviderExchangeError - Code-for-token exchange failed
    ├── ProviderProfileError - Profile fetch failed or lacked the user id
    ├── StorageError - Identity/credential store unreachable or conflicting
    ├── SigningError - Session token could not be signed
    ├── ProviderNotFoundError - Unknown or unconfigured platform
    ├── InvalidStateError - OAuth state missing, forged or expired
    └── InvalidSessionError - Bearer session token rejected
"""

from typing import Optional


class LinkingError(Exception):
    """
    Base exception for all login/linking errors.

    Attributes:
        message: Detailed description (server-side only)
        platform: Optional platform name where the error occurred
        status_code: HTTP status used when the error reaches a client
        public_message: Client-safe description
    """

    status_code = 500
    public_message = "Sign-in failed. Please try again."

    def __init__(self, message: str, platform: Optional[str] = None):
        self.message = message
        self.platform = platform

        if platform:
            full_message = f"{message} [platform={platform}]"
        else:
            full_message = message

        super().__init__(full_message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class ProviderExchangeError(LinkingError):
    """
    Raised when the authorization code cannot be exchanged for a token.

    This typically occurs when:
    - The code is invalid, expired or already used
    - The provider answers with a non-success status or an OAuth error body
    - The token response is malformed or lacks an access token
    - The provider times out or cannot be reached

    The client has to restart the login from the authorization step.
    """

    status_code = 400
    public_message = "The authorization code is invalid or has expired. Please start the login again."
    restart_login = True


class ProviderProfileError(LinkingError):
    """Raised when the platform profile cannot be fetched or has no user id."""

    status_code = 502
    public_message = "Could not read your profile from the provider. Please try again."


class StorageError(LinkingError):
    """
    Raised when the identity or credential store fails.

    Covers an unreachable database, a constraint violation, and any
    non-success answer from the account persistence service.
    """

    status_code = 503
    public_message = "The service is temporarily unavailable. Please try again."


class SigningError(LinkingError):
    """Raised when a session token cannot be issued."""

    status_code = 500
    public_message = "Could not complete sign-in. Please try again."


class ProviderNotFoundError(LinkingError):
    """
    Raised when an unknown or unconfigured platform is requested.

    Example:
        >>> ProviderRegistry.build("myspace", settings)
        ProviderNotFoundError: Platform 'myspace' not available. Available: ['meta', 'snapchat', 'tiktok']
    """

    status_code = 404
    public_message = "Unknown or disabled platform."

    def __init__(self, platform_name: str, available_platforms: list[str]):
        self.platform_name = platform_name
        self.available_platforms = available_platforms
        message = (
            f"Platform '{platform_name}' not available. "
            f"Available: {available_platforms}"
        )
        super().__init__(message, platform=platform_name)


class InvalidStateError(LinkingError):
    """Raised when the OAuth state parameter does not verify."""

    status_code = 400
    public_message = "Invalid or expired login state. Please start the login again."


class InvalidSessionError(LinkingError):
    """Raised when a bearer session token is rejected."""

    status_code = 401
    public_message = "Invalid or expired token"
