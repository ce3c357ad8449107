import hashlib
import re
import secrets

TOKEN_BYTES = 32  # 64 hex chars
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{10,64}$")


def new_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def well_formed(token: str | None) -> bool:
    return isinstance(token, str) and bool(TOKEN_PATTERN.match(token))
