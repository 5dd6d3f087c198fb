import secrets


def build_payment_reference(base_url: str, reservation_id: str) -> str:
    """Callback URL for the payment front-end; the token makes it unguessable."""
    token = secrets.token_urlsafe(16)
    return f"{base_url.rstrip('/')}/pay/{reservation_id}?token={token}"
