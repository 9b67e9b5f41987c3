# crm/core/security_password.py
from __future__ import annotations
from typing import Tuple
from passlib.context import CryptContext

# argon2 para hashes novos; bcrypt aceito para contas importadas
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    deprecated="auto",
    argon2__time_cost=2,
    argon2__memory_cost=19456,
    argon2__parallelism=1,
)

MIN_PASSWORD = 8
MAX_PASSWORD = 128


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def password_policy_ok(plain: str) -> bool:
    return isinstance(plain, str) and MIN_PASSWORD <= len(plain) <= MAX_PASSWORD


def verify_and_maybe_upgrade(plain: str, stored_hash: str) -> Tuple[bool, str | None]:
    """(ok, novo_hash): novo_hash só vem preenchido quando o esquema ficou obsoleto."""
    if not stored_hash or not pwd_context.verify(plain, stored_hash):
        return False, None
    if pwd_context.needs_update(stored_hash):
        return True, pwd_context.hash(plain)
    return True, None
