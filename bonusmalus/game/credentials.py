"""Access codes handed to players when a game is created."""

import secrets
import string

# Look-alike characters (0/O, 1/I/L) are left out.
ACCESS_CODE_ALPHABET = "".join(
    c for c in string.ascii_uppercase + string.digits if c not in "0O1IL"
)


def generate_access_code(length: int = 8) -> str:
    if length < 4:
        raise ValueError(f"Access codes need at least 4 characters, got {length}.")
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))
