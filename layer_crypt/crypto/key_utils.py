"""
Key content sniffing.

Decides what kind of key material a file holds: public key, X.509
certificate, private key or GPG secret keyring. PEM/DER parsing uses
cryptography; OpenPGP parsing uses pgpy.
"""

from collections.abc import Callable
from typing import Any

import pgpy
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from layer_crypt.exceptions import PasswordError

_PrivateKeyLoader = Callable[..., Any]


def is_public_key(data: bytes) -> bool:
    """Check whether data is a PEM or DER encoded public key."""
    for load in (serialization.load_pem_public_key, serialization.load_der_public_key):
        try:
            load(data)
        except (ValueError, UnsupportedAlgorithm):
            continue
        return True
    return False


def is_certificate(data: bytes) -> bool:
    """Check whether data is a PEM or DER encoded X.509 certificate."""
    for load in (x509.load_pem_x509_certificate, x509.load_der_x509_certificate):
        try:
            load(data)
        except ValueError:
            continue
        return True
    return False


def is_private_key(data: bytes, password: bytes | None) -> bool:
    """
    Check whether data is a PEM or DER encoded private key.

    A password given for an unencrypted key is ignored.

    Args:
        data: Key file content.
        password: Password for an encrypted key.

    Returns:
        True if the data holds a private key that could be loaded.

    Raises:
        PasswordError: If the key is encrypted and the password is missing or wrong.
    """
    for load in (serialization.load_pem_private_key, serialization.load_der_private_key):
        try:
            load(data, password=None)
        except TypeError:
            # Only raised for keys that are encrypted
            return _load_encrypted_private_key(load, data, password)
        except (ValueError, UnsupportedAlgorithm):
            continue
        return True
    return False


def is_gpg_private_key_ring(data: bytes) -> bool:
    """Check whether data is an armored or binary OpenPGP secret keyring."""
    try:
        keys = load_gpg_keys(data)
    except Exception:
        return False
    return any(not key.is_public for key in keys)


def load_gpg_keys(data: bytes) -> list[pgpy.PGPKey]:
    """Load every key of an armored or binary OpenPGP keyring."""
    key, others = pgpy.PGPKey.from_blob(data)
    return [key, *(others or {}).values()]


def _load_encrypted_private_key(load: _PrivateKeyLoader, data: bytes, password: bytes | None) -> bool:
    if not password:
        msg = "Missing password for encrypted private key"
        raise PasswordError(msg)
    try:
        load(data, password=password)
    except (ValueError, TypeError) as e:
        msg = "Private key could not be decrypted with the given password"
        raise PasswordError(msg) from e
    return True
