"""
Random identifiers for sessions.

Session ids are the installation's system id followed by a random
alphanumeric string, so ids from different installations sharing one
Redis never collide.
"""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits


def generate_random_string(length: int = 32) -> str:
    """Return a cryptographically random alphanumeric string."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class SessionIDGenerator:
    """
    Produces session ids and challenge tokens.

    Args:
        system_id: Installation prefix prepended to every session id.
        length: Length of the random part of session ids.
        token_length: Length of challenge tokens.
    """

    def __init__(self, system_id: str = "", length: int = 32, token_length: int = 32):
        self.system_id = system_id
        self.length = length
        self.token_length = token_length

    @classmethod
    def from_settings(cls, settings) -> "SessionIDGenerator":
        return cls(
            system_id=settings.system_id,
            length=settings.session_id_length,
            token_length=settings.challenge_token_length,
        )

    def new_session_id(self) -> str:
        return self.system_id + generate_random_string(self.length)

    def new_challenge_token(self) -> str:
        return generate_random_string(self.token_length)
