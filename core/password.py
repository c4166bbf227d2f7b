from passlib.context import CryptContext

BCRYPT_ROUNDS = 12

# bcrypt with a fixed cost factor; older hashes with a lower cost get upgraded on login
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a password against a stored bcrypt hash.
    A malformed stored hash counts as a mismatch rather than an error.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def needs_rehash(hashed_password: str) -> bool:
    """True when the stored hash was made with another scheme or cost factor."""
    return pwd_context.needs_update(hashed_password)


def dummy_verify() -> None:
    """
    Burns the same time as a real verification. Called when the email is
    unknown so both login failures take about as long.
    """
    pwd_context.dummy_verify()
