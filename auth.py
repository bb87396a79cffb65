import hmac
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="access-token")


def api_key_matches(candidate: str) -> bool:
    settings = get_settings()
    return hmac.compare_digest(candidate.encode(), settings.api_key.encode())


def issue_access_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def verify_access_token(token: str, max_age_hours: Optional[int] = None) -> int:
    """Return the user id carried by ``token`` or raise ``ValueError``."""
    settings = get_settings()
    hours = max_age_hours if max_age_hours is not None else settings.token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=hours * 3600)
    except SignatureExpired as exc:
        raise ValueError("Token expired") from exc
    except BadSignature as exc:
        raise ValueError("Token is not valid") from exc

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int) or user_id < 1:
        raise ValueError("Token is not valid")
    return user_id
