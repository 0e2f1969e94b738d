"""
Security utilities for credential generation.
"""
import secrets
import string

from provisioner.config.logging import get_logger

logger = get_logger(__name__)

PASSWORD_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits + "!#%&"
DEFAULT_PASSWORD_LENGTH = 20


def generate_password(length: int = DEFAULT_PASSWORD_LENGTH) -> str:
    """
    Generate a random password.

    Every character is drawn independently and uniformly from
    PASSWORD_ALPHABET using the operating system's CSPRNG. There is no
    fallback to a weaker source: if the OS source is unavailable the
    underlying error propagates.

    Args:
        length: Number of characters

    Returns:
        Random password
    """
    if length < 1:
        raise ValueError("password length must be positive")

    password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))

    logger.debug("password_generated", length=length)

    return password
