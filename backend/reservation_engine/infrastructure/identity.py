from typing import Sequence

from ..domain.errors import UnauthenticatedError
from ..domain.identity import IdentityProvider
from ..utils.auth import decode_access_token, extract_bearer_token


class JwtIdentityProvider(IdentityProvider):
    """Resolves `Authorization: Bearer <jwt>` to the token subject."""

    def __init__(self, *, secret: str, algorithms: Sequence[str]) -> None:
        self.secret = secret
        self.algorithms = list(algorithms)

    def resolve(self, credential: str | None) -> str:
        try:
            token = extract_bearer_token(credential)
            return decode_access_token(token, secret=self.secret, algorithms=self.algorithms)
        except ValueError as exc:
            raise UnauthenticatedError(str(exc)) from exc
