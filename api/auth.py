import hmac

from fastapi import Request
from loguru import logger

from api.responses import APIError
from core.config import Settings

BEARER_PREFIX = "Bearer"


def check_token(auth_header: str | None, expected_token: str) -> str | None:
    """Validate an ``Authorization`` header value.

    Returns None when the request may proceed, otherwise the error message
    for the 401 response.
    """
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return "Authorization header is missing"
    token = auth_header.removeprefix(f"{BEARER_PREFIX} ")
    # an unset token rejects everything, including an empty "Bearer " credential
    if not expected_token or not hmac.compare_digest(token.encode(), expected_token.encode()):
        return "Unauthorized (401)"
    return None


def require_token(request: Request) -> None:
    """Router dependency guarding every zone operation."""
    settings: Settings = request.app.state.settings
    message = check_token(request.headers.get("Authorization"), settings.HTTP_TOKEN)
    if message is not None:
        client = request.client.host if request.client else "unknown"
        logger.debug(f"Rejected {request.method} {request.url.path} from {client}: {message}")
        raise APIError(401, message)
