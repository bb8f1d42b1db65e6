import secrets
import string

_ALPHABET = string.ascii_letters + string.digits


def random_id(length: int = 16) -> str:
    """
    Generate a random alphanumeric identifier.

    With 16 chars from 62 symbols, collisions are negligible at any realistic volume. Same format as the host identifiers.
    """
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
