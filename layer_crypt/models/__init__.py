"""
Domain models for layer crypt.

These are immutable (frozen) dataclasses representing the core domain concepts.
"""

from layer_crypt.models.crypto import (
    CryptoConfig,
    DecryptBackend,
    DecryptConfig,
    EncryptBackend,
    EncryptConfig,
    JweDecryptBackend,
    JweEncryptBackend,
    KeyMaterial,
    PgpDecryptBackend,
    PgpEncryptBackend,
    Pkcs7DecryptBackend,
    Pkcs7EncryptBackend,
    Scheme,
)
from layer_crypt.models.image import Descriptor, ImageRecord, LayerInfo, Platform
from layer_crypt.models.recipients import PrivateKeys, RecipientKeys

__all__ = [
    # Image
    "Platform",
    "Descriptor",
    "LayerInfo",
    "ImageRecord",
    # Crypto
    "Scheme",
    "KeyMaterial",
    "PgpEncryptBackend",
    "JweEncryptBackend",
    "Pkcs7EncryptBackend",
    "PgpDecryptBackend",
    "JweDecryptBackend",
    "Pkcs7DecryptBackend",
    "EncryptBackend",
    "DecryptBackend",
    "EncryptConfig",
    "DecryptConfig",
    "CryptoConfig",
    # Recipients
    "RecipientKeys",
    "PrivateKeys",
]
