"""
Common API dependencies: the authenticated principal.
"""

from fastapi import Request

from zhir.config import config
from zhir.errors import AuthenticationError


def get_current_user(request: Request) -> str:
    """
    Return the principal id forwarded by the authenticating front-end.

    Raises AuthenticationError (401) when the header is missing or blank.
    """
    user_id = request.headers.get(config.USER_ID_HEADER, "").strip()
    if not user_id:
        raise AuthenticationError()
    return user_id
