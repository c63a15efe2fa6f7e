from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from market.core.config import settings


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret_key=settings.owner_token_secret.get_secret_value(),
        salt="owner-token",
    )


def sign_owner_token(owner_id: str) -> str:
    # the auth frontend mints these after login
    return _serializer().dumps({"sub": owner_id})


def verify_owner_token(token: str, max_age: int | None = None) -> str | None:
    """Return the owner id carried by a valid, unexpired token, else None."""
    try:
        data = _serializer().loads(token, max_age=max_age or settings.owner_token_max_age_seconds)
    except (BadSignature, SignatureExpired, ValueError, TypeError):
        return None
    owner_id = data.get("sub") if isinstance(data, dict) else None
    if not isinstance(owner_id, str) or not owner_id:
        return None
    return owner_id
