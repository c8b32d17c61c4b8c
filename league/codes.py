import secrets
import string
import uuid

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits

ID_PREFIXES = {
    'user': 'u_',
    'team': 'tm_',
    'tournament': 't_',
    'match': 'm_',
}


def generate_short_id(prefix: str = "") -> str:
    """Generate a short random ID like 't_3f9a1c2b7d4e'"""
    short = uuid.uuid4().hex[:12]
    return f"{prefix}{short}" if prefix else short


def new_id(kind: str) -> str:
    return generate_short_id(ID_PREFIXES[kind])


def generate_invite_code(length: int = 8) -> str:
    """Random uppercase alphanumeric join code, e.g. 'K7Q2XM9A'."""
    return ''.join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code) -> str:
    return (code or '').strip().upper()
