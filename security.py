import secrets
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer
from passlib.context import CryptContext

from config import get_settings

ACCESS_SALT = "relieflink-access"
REFRESH_SALT = "relieflink-refresh"

serializer = URLSafeTimedSerializer(get_settings().secret_key)


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, role: str) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": 3, "role": "USER"}
    """
    return serializer.dumps({"user_id": user_id, "role": role}, salt=ACCESS_SALT)


def create_refresh_token(user_id: int) -> str:
    # jti keeps two tokens issued in the same second distinct
    return serializer.dumps(
        {"user_id": user_id, "jti": secrets.token_hex(8)}, salt=REFRESH_SALT
    )


def _load(token: str, salt: str, max_age_seconds: int) -> Optional[dict]:
    try:
        data = serializer.loads(token, salt=salt, max_age=max_age_seconds)
    except BadSignature:
        return None
    if not isinstance(data, dict) or "user_id" not in data:
        return None
    return data


def verify_access_token(token: str, max_age_seconds: Optional[int] = None) -> Optional[dict]:
    """
    Returns dict {'user_id': ..., 'role': ...} if valid,
    or None if token is invalid/expired.
    """
    if max_age_seconds is None:
        max_age_seconds = get_settings().access_token_max_age
    return _load(token, ACCESS_SALT, max_age_seconds)


def verify_refresh_token(token: str, max_age_seconds: Optional[int] = None) -> Optional[dict]:
    if max_age_seconds is None:
        max_age_seconds = get_settings().refresh_token_days * 24 * 60 * 60
    return _load(token, REFRESH_SALT, max_age_seconds)
