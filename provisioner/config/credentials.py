"""
Server credentials file: loading and interactive initialization.

File format:

    [mariadb]
    username=root
    password=secret
    hostname=localhost
    port=3306
"""
import configparser
import getpass
import os
from pathlib import Path
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from provisioner.config.logging import get_logger
from provisioner.exceptions import ConfigurationError
from provisioner.models.server import ServerCredentials

logger = get_logger(__name__)

REQUIRED_KEYS = ("username", "password", "hostname", "port")

Prompt = Callable[[str], str]


def load_credentials(path: Path, section: str = "mariadb") -> ServerCredentials:
    """
    Load administrative credentials from an INI file.

    Args:
        path: Credentials file
        section: Section holding the four keys

    Returns:
        Validated credentials

    Raises:
        ConfigurationError: If the file, section or any key is missing or invalid
    """
    # Interpolation off: passwords may contain '%'
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as f:
            parser.read_file(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"config file not found: {path} (run with --init to create it)",
            details={"path": str(path)},
        ) from e
    except (OSError, configparser.Error) as e:
        raise ConfigurationError(f"cannot read config {path}: {e}", details={"path": str(path)}) from e

    if not parser.has_section(section) or not parser.items(section):
        raise ConfigurationError(
            f"missing or empty section [{section}] in {path}",
            details={"path": str(path), "section": section},
        )

    values = dict(parser.items(section))
    missing = [key for key in REQUIRED_KEYS if key not in values]
    if missing:
        raise ConfigurationError(
            f"config missing required fields ({'/'.join(missing)}) in [{section}] of {path}",
            details={"path": str(path), "missing": missing},
        )

    try:
        credentials = ServerCredentials(**{key: values[key] for key in REQUIRED_KEYS})
    except PydanticValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors()})
        raise ConfigurationError(
            f"invalid config values ({', '.join(fields)}) in [{section}] of {path}",
            details={"path": str(path), "fields": fields},
        ) from e

    logger.info("credentials_loaded", path=str(path), section=section, hostname=credentials.hostname)

    return credentials


def initialize_config(
    path: Path,
    section: str = "mariadb",
    prompt: Prompt = input,
    secret_prompt: Prompt = getpass.getpass,
) -> bool:
    """
    Interactively write a credentials file with owner-only permissions.

    Args:
        path: File to create
        section: Section name to write
        prompt: Reads a visible answer
        secret_prompt: Reads the password without echo

    Returns:
        True if the file was written, False if overwriting was declined
    """
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if path.exists():
        answer = prompt(f"{path} already exists. Overwrite? (y/N): ")
        if answer.strip().lower() != "y":
            logger.info("config_init_declined", path=str(path))
            return False

    username = prompt("Enter MariaDB root username [root]: ").strip() or "root"
    password = secret_prompt("Enter MariaDB root password: ")
    hostname = prompt("Enter MariaDB hostname [localhost]: ").strip() or "localhost"
    port = prompt("Enter MariaDB port [3306]: ").strip() or "3306"

    parser = configparser.ConfigParser(interpolation=None)
    parser[section] = {
        "username": username,
        "password": password,
        "hostname": hostname,
        "port": port,
    }

    # Created 0600 from the start: the file holds credentials
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        parser.write(f)
    os.chmod(path, 0o600)

    logger.info("config_initialized", path=str(path), section=section)

    return True
