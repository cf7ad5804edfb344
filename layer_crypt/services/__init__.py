"""
Image encryption services for layer crypt.
"""

from layer_crypt.services.crypt_options import (
    CryptOptions,
    create_decrypt_crypto_config,
    create_encrypt_crypto_config,
)
from layer_crypt.services.crypt_service import ImageCryptService

__all__ = [
    "CryptOptions",
    "ImageCryptService",
    "create_decrypt_crypto_config",
    "create_encrypt_crypto_config",
]
