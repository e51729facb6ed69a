"""Principal identity resolution.

Maps the ``Authorization`` header of a request to a stable principal.
Token issuance lives elsewhere; this module only verifies.

Auth transport:
  - Bearer: ``Authorization: Bearer <jwt>`` signed with the shared secret.
"""

from __future__ import annotations

from dataclasses import dataclass

import jwt

from .observability import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = 'Bearer '
DEFAULT_ALGORITHMS = ('HS256',)


@dataclass(frozen=True, slots=True)
class Principal:
    """An authenticated identity.

    Attributes:
        id: Stable principal identifier (``sub`` claim).
        email: Normalized email, empty when the token carries none.
    """

    id: str
    email: str = ''


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from a ``Bearer`` header, or None."""
    if authorization and authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        return token or None
    return None


class JwtPrincipalResolver:
    """Verifies bearer JWTs and returns the principal they name.

    Args:
        secret: Verification key.
        algorithms: Accepted JWT algorithms.
    """

    def __init__(
        self,
        secret: str,
        algorithms: tuple[str, ...] = DEFAULT_ALGORITHMS,
    ) -> None:
        if not secret:
            raise ValueError('secret is required')
        self._secret = secret
        self._algorithms = list(algorithms)

    def resolve(self, authorization: str | None) -> Principal | None:
        token = extract_bearer_token(authorization)
        if token is None:
            return None
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                options={'require': ['sub', 'exp'], 'verify_exp': True},
            )
        except jwt.ExpiredSignatureError:
            logger.info('principal_token_expired')
            return None
        except jwt.InvalidTokenError as exc:
            logger.info('principal_token_invalid', reason=type(exc).__name__)
            return None

        sub = claims.get('sub')
        if not sub:
            return None
        email = claims.get('email') or ''
        return Principal(id=str(sub), email=email.lower())
