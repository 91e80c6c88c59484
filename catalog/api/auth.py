"""
Bearer-token gate for protected routes.

The expected token is handed to the gate when the app is built; requests
never look it up from the environment themselves. A gate without a token
reports a server configuration problem, which is a different failure from a
caller sending a wrong or missing token.
"""

import hmac
from typing import Optional

from fastapi import Header, status

from catalog.api.errors import ApiError

UNAUTHORIZED_MESSAGE = "Unauthorized - Invalid or missing API token"
NOT_CONFIGURED_MESSAGE = "API not configured"


def _extract_bearer_token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    parts = raw.split(" ", 1)
    if len(parts) != 2 or parts[0].strip().lower() != "bearer":
        return ""
    return parts[1].strip()


class BearerTokenGate:
    """
    FastAPI dependency that admits a request only with the expected token.

    With `optional=True` an unconfigured gate lets every request through;
    the metrics endpoint uses this so it stays reachable until a token is set.
    """

    def __init__(
        self,
        expected_token: Optional[str],
        *,
        optional: bool = False,
        unauthorized_message: str = UNAUTHORIZED_MESSAGE,
    ) -> None:
        self._expected = (expected_token or "").strip()
        self._optional = optional
        self._unauthorized_message = unauthorized_message

    @property
    def configured(self) -> bool:
        return bool(self._expected)

    def verify(self, authorization: Optional[str]) -> None:
        if not self._expected:
            if self._optional:
                return
            raise ApiError(
                status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": NOT_CONFIGURED_MESSAGE}
            )

        provided = _extract_bearer_token(authorization)
        if not hmac.compare_digest(provided.encode("utf-8"), self._expected.encode("utf-8")):
            raise ApiError(
                status.HTTP_401_UNAUTHORIZED, {"error": self._unauthorized_message}
            )

    def __call__(self, authorization: Optional[str] = Header(default=None)) -> None:
        self.verify(authorization)


__all__ = ["BearerTokenGate", "NOT_CONFIGURED_MESSAGE", "UNAUTHORIZED_MESSAGE"]
