from typing import Protocol


class IdentityProvider(Protocol):
    def resolve(self, credential: str | None) -> str:
        """Return the authenticated user id for a credential or raise UnauthenticatedError."""
        ...
