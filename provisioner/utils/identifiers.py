"""
Utility functions for turning operator input into safe server identifiers.

Identifier rules:
- 1 to 64 characters
- Only ASCII letters, digits and underscore

Only values of type ``Identifier`` and ``HostPattern`` are accepted by the
statement builder in ``provisioner.utils.sql``.
"""
import hashlib
import re

from provisioner.exceptions import (
    InvalidHostError,
    InvalidIdentifierError,
    InvalidRawInputError,
)

MAX_IDENTIFIER_LENGTH = 64
MAX_HOST_LENGTH = 255
HASH_SUFFIX_LENGTH = 8

IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_]+")
RAW_NAME_RE = re.compile(r"[A-Za-z0-9._-]+")
HOST_RE = re.compile(r"[A-Za-z0-9.-]+")
WILDCARD_HOST_RE = re.compile(r"[A-Za-z0-9.%_-]+")

_DISALLOWED_RUN_RE = re.compile(r"[^a-z0-9_]+")
_UNDERSCORE_RUN_RE = re.compile(r"_+")


class Identifier(str):
    """A name that matches the identifier grammar."""

    def __new__(cls, name: str) -> "Identifier":
        if not name:
            raise InvalidIdentifierError("empty name")
        if len(name) > MAX_IDENTIFIER_LENGTH:
            raise InvalidIdentifierError(
                f"name too long (max {MAX_IDENTIFIER_LENGTH})",
                details={"name": name, "length": len(name)},
            )
        if not IDENTIFIER_RE.fullmatch(name):
            raise InvalidIdentifierError(
                f"invalid name '{name}' (allowed: a-z A-Z 0-9 _)",
                details={"name": name},
            )
        return super().__new__(cls, name)


class HostPattern(str):
    """The host part of an account, validated against the host grammar."""

    allow_wildcards: bool

    def __new__(cls, host: str, allow_wildcards: bool = False) -> "HostPattern":
        host = host.strip()
        if not host:
            raise InvalidHostError("empty host")
        if len(host) > MAX_HOST_LENGTH:
            raise InvalidHostError(
                f"host too long (max {MAX_HOST_LENGTH})",
                details={"length": len(host)},
            )

        if not allow_wildcards:
            if "%" in host or "_" in host:
                raise InvalidHostError(
                    "wildcard host not allowed ('%' or '_' found); "
                    "use --allow-wildcard-host to permit it",
                    details={"host": host},
                )
            if not HOST_RE.fullmatch(host):
                raise InvalidHostError(
                    f"invalid host '{host}' (allowed: a-z A-Z 0-9 . -)",
                    details={"host": host},
                )
        elif not WILDCARD_HOST_RE.fullmatch(host):
            raise InvalidHostError(
                f"invalid host '{host}' (allowed: a-z A-Z 0-9 . % _ -)",
                details={"host": host},
            )

        obj = super().__new__(cls, host)
        obj.allow_wildcards = allow_wildcards
        return obj


def validate_identifier(name: str) -> Identifier:
    """
    Validate a name against the identifier grammar.

    Args:
        name: Candidate identifier

    Returns:
        The name as an Identifier

    Raises:
        InvalidIdentifierError: If the name is empty, too long or has
            characters outside [A-Za-z0-9_]
    """
    return Identifier(name)


def validate_raw_name(raw: str) -> None:
    """
    Check raw input before normalization.

    Keeps arbitrary garbage from collapsing into a valid-looking identifier.

    Raises:
        InvalidRawInputError: If the input is blank or has characters
            outside [A-Za-z0-9._-]
    """
    s = raw.strip()
    if not s:
        raise InvalidRawInputError("empty name")
    if not RAW_NAME_RE.fullmatch(s):
        raise InvalidRawInputError(
            f"invalid characters in name '{raw}' (allowed: a-z A-Z 0-9 . _ -)",
            details={"raw_name": raw},
        )


def normalize_name(raw: str) -> Identifier:
    """
    Convert common inputs (domains, etc.) into a safe identifier.

    Lower-cases, maps '.' and '-' to '_', collapses runs of other
    characters and of underscores to a single '_', and trims underscores.
    Results longer than 64 characters are cut to 55 characters and get
    '_' plus the first 8 hex digits of the SHA-1 of the stripped input.

    Args:
        raw: Operator input

    Returns:
        Normalized identifier

    Raises:
        InvalidRawInputError: If nothing usable is left after normalization

    Examples:
        normalize_name("hardhq.com") -> "hardhq_com"
        normalize_name("WWW.Example.COM") -> "www_example_com"
        normalize_name("___Already__Ok___") -> "already_ok"
    """
    stripped = raw.strip()

    s = stripped.lower().replace(".", "_").replace("-", "_")
    s = _DISALLOWED_RUN_RE.sub("_", s)
    s = _UNDERSCORE_RUN_RE.sub("_", s)
    s = s.strip("_")

    if not s:
        raise InvalidRawInputError(
            f"name '{raw}' normalizes to empty identifier",
            details={"raw_name": raw},
        )

    if len(s) > MAX_IDENTIFIER_LENGTH:
        suffix = hashlib.sha1(stripped.encode("utf-8")).hexdigest()[:HASH_SUFFIX_LENGTH]
        base_length = MAX_IDENTIFIER_LENGTH - 1 - HASH_SUFFIX_LENGTH
        s = f"{s[:base_length]}_{suffix}"

    return Identifier(s)


def resolve_identifier(raw: str, normalize: bool) -> Identifier:
    """
    Turn requested input into the identifier used for both schema and user.

    Args:
        raw: Operator input (already stripped by the caller)
        normalize: Normalize instead of requiring the strict grammar

    Returns:
        Validated identifier
    """
    if normalize:
        validate_raw_name(raw)
        return normalize_name(raw)
    return validate_identifier(raw)
