import hashlib
import re
import secrets

import bcrypt

from backend.core import config

_BCRYPT_HASH = re.compile(r'^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$')


def is_password_hash(value: str | None) -> bool:
    return bool(value) and _BCRYPT_HASH.match(value) is not None


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes.
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not plain_password or not is_password_hash(hashed_password):
        return False
    return bcrypt.checkpw(plain_password.encode('utf-8')[:72], hashed_password.encode('utf-8'))


def generate_reset_secret() -> str:
    return secrets.token_hex(20)


def hash_reset_secret(raw_secret: str) -> str:
    return hashlib.sha256(raw_secret.encode('utf-8')).hexdigest()
