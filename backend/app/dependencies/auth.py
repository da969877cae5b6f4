"""Authorization dependencies for job-trigger routes."""

from fastapi import Header


class MissingAuthorizationException(Exception):
    """Raised when a job trigger arrives without an Authorization header."""
    pass


async def require_authorization_header(authorization: str | None = Header(None)) -> str:
    """Require a bearer Authorization header.

    Only presence is checked here; token validation is done by the hosting
    platform in front of the service.
    """
    if not authorization or not authorization.strip():
        raise MissingAuthorizationException()
    return authorization
