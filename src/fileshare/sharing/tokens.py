"""Link token issuance.

Tokens are 128-bit-class random values, hex encoded. Pre-issuance
probability is not trusted on its own: the share store's
``ux_shares_link_token`` constraint is authoritative, and the lifecycle
manager asks for a replacement token whenever it fires.
"""

from __future__ import annotations

import secrets

DEFAULT_TOKEN_BYTES = 16  # 128 bits -> 32 hex chars.


class LinkTokenIssuer:
    """Issues opaque bearer tokens for link shares."""

    def __init__(self, nbytes: int = DEFAULT_TOKEN_BYTES) -> None:
        if nbytes < DEFAULT_TOKEN_BYTES:
            raise ValueError(f'nbytes must be >= {DEFAULT_TOKEN_BYTES}')
        self._nbytes = nbytes

    def issue(self) -> str:
        return secrets.token_hex(self._nbytes)
