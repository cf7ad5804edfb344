"""
Recipient and private key classification.

Recipients are given as "protocol:value" strings:
- pgp:<email or name>
- jwe:<path to public key file>
- pkcs7:<path to X.509 certificate file>

Private key files are given as "<filename>[:<password>]" where the password
takes one of the forms:
- file=<password file>
- pass=<password>
- fd=<file descriptor>
- <password>
"""

import os
from collections.abc import Iterable
from pathlib import Path

import structlog

from layer_crypt.crypto.key_utils import (
    is_certificate,
    is_gpg_private_key_ring,
    is_private_key,
    is_public_key,
)
from layer_crypt.exceptions import (
    KeyContentError,
    SpecifierFormatError,
    TransportError,
    UnidentifiedKeyError,
)
from layer_crypt.models.crypto import KeyMaterial, Scheme
from layer_crypt.models.recipients import PrivateKeys, RecipientKeys

logger = structlog.get_logger(__name__)

_DEFAULT_PASSWORD_FD_READ_SIZE = 64


def process_recipient_keys(recipients: Iterable[str]) -> RecipientKeys:
    """
    Sort recipients by scheme.

    Args:
        recipients: "protocol:value" strings.

    Returns:
        RecipientKeys with PGP identities, public keys and certificates.

    Raises:
        SpecifierFormatError: If a recipient has no protocol or an unknown one.
        KeyContentError: If a file cannot be read or holds the wrong kind of key.
    """
    gpg_recipients: list[bytes] = []
    public_keys: list[bytes] = []
    certificates: list[bytes] = []

    for recipient in recipients:
        protocol, sep, value = recipient.partition(":")
        if not sep:
            msg = "Invalid recipient format"
            raise SpecifierFormatError(msg, recipient=recipient)

        match protocol:
            case Scheme.PGP:
                gpg_recipients.append(value.encode("utf-8"))
            case Scheme.JWE:
                data = _read_key_file(value)
                if not is_public_key(data):
                    msg = "File provided is not a public key"
                    raise KeyContentError(msg, path=value, protocol=protocol)
                public_keys.append(data)
            case Scheme.PKCS7:
                data = _read_key_file(value)
                if not is_certificate(data):
                    msg = "File provided is not an x509 cert"
                    raise KeyContentError(msg, path=value, protocol=protocol)
                certificates.append(data)
            case _:
                msg = "Provided protocol not recognized"
                raise SpecifierFormatError(msg, recipient=recipient, protocol=protocol)

    return RecipientKeys(
        gpg_recipients=tuple(gpg_recipients),
        public_keys=tuple(public_keys),
        certificates=tuple(certificates),
    )


def process_password_string(
    password_string: str, *, fd_read_size: int = _DEFAULT_PASSWORD_FD_READ_SIZE
) -> bytes:
    """
    Resolve a password specifier to the password bytes.

    Args:
        password_string: "file=<path>", "pass=<password>", "fd=<fd>" or a bare password.
        fd_read_size: Maximum number of bytes read from a file descriptor.

    Returns:
        The password.

    Raises:
        SpecifierFormatError: If an fd= value is not a number.
        KeyContentError: If a password file cannot be read.
        TransportError: If the file descriptor is invalid or unreadable.
    """
    kind, sep, value = password_string.partition("=")
    if not sep:
        return password_string.encode("utf-8")

    match kind:
        case "file":
            try:
                return Path(value).read_bytes()
            except OSError as e:
                msg = f"Could not read password file: {e.strerror}"
                raise KeyContentError(msg, path=value) from e
        case "pass":
            return value.encode("utf-8")
        case "fd":
            return _read_password_fd(value, fd_read_size)
        case _:
            return password_string.encode("utf-8")


def process_private_key_files(
    key_files_and_passwords: Iterable[str],
    *,
    fd_read_size: int = _DEFAULT_PASSWORD_FD_READ_SIZE,
) -> PrivateKeys:
    """
    Sort private key files into private keys and GPG secret keyrings.

    Args:
        key_files_and_passwords: "<filename>[:<password specifier>]" strings.
        fd_read_size: Maximum number of bytes read for fd= passwords.

    Returns:
        PrivateKeys holding each key with its password.

    Raises:
        PasswordError: If a private key's password is wrong or missing.
        UnidentifiedKeyError: If a file holds neither kind of key.
        KeyContentError: If a key file cannot be read.
    """
    private_keys: list[KeyMaterial] = []
    gpg_secret_key_rings: list[KeyMaterial] = []

    for key_file_and_password in key_files_and_passwords:
        key_file, sep, password_string = key_file_and_password.partition(":")
        password = (
            process_password_string(password_string, fd_read_size=fd_read_size) if sep else None
        )

        data = _read_key_file(key_file)
        material = KeyMaterial(data=data, password=password)
        if is_private_key(data, password):
            private_keys.append(material)
        elif is_gpg_private_key_ring(data):
            gpg_secret_key_rings.append(material)
        else:
            msg = "Unidentified private key in file"
            raise UnidentifiedKeyError(msg, path=key_file)
        logger.debug("Classified private key file", path=key_file)

    return PrivateKeys(
        private_keys=tuple(private_keys),
        gpg_secret_key_rings=tuple(gpg_secret_key_rings),
    )


def _read_key_file(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        msg = f"Unable to read file: {e.strerror}"
        raise KeyContentError(msg, path=path) from e


def _read_password_fd(fd_string: str, read_size: int) -> bytes:
    try:
        fd = int(fd_string)
    except ValueError as e:
        msg = "Could not parse file descriptor"
        raise SpecifierFormatError(msg, fd=fd_string) from e

    try:
        with os.fdopen(fd, "rb", buffering=0) as f:
            return f.read(read_size) or b""
    except (OSError, ValueError) as e:
        msg = f"Could not read from file descriptor: {e}"
        raise TransportError(msg, fd=fd) from e
