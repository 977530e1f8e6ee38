from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings


CSRF_HEADER = "X-CSRF-Token"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt="csrf-token")


def generate_csrf_token(organization_id: int) -> str:
    return _serializer().dumps({"org": organization_id})


def validate_csrf_token(
    token: str, organization_id: int, max_age_hours: int = 2
) -> bool:
    if not token:
        return False
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except SignatureExpired:
        return False
    except BadSignature:
        return False
    return isinstance(data, dict) and data.get("org") == organization_id
