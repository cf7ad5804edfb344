"""
Layer Crypt.

Selective encryption and decryption of container image layers, with PGP, JWE
and PKCS7 recipients usable side by side on the same image.

Example:
    ```python
    from layer_crypt import ImageCryptService, combine_crypto_configs, encrypt_with_jwe, platforms

    service = ImageCryptService(content_store, image_store, leases, backend)
    config = combine_crypto_configs([encrypt_with_jwe([public_key_pem])])

    # Encrypt the topmost layer of the linux/amd64 image only
    image = service.encrypt_image(
        image, "registry/app:encrypted", config,
        platforms=[platforms.parse("linux/amd64")], layers=[-1],
    )
    ```
"""

from layer_crypt.config import LayerCryptConfig
from layer_crypt.crypto.config import (
    attach_decrypt_config,
    combine_crypto_configs,
    decrypt_with_gpg_priv_keys,
    decrypt_with_priv_keys,
    decrypt_with_x509s,
    encrypt_with_gpg,
    encrypt_with_jwe,
    encrypt_with_pkcs7,
)
from layer_crypt.exceptions import (
    BackendError,
    GPGError,
    KeyContentError,
    LayerCryptError,
    LeaseError,
    MissingKeyError,
    PasswordError,
    PayloadTypeError,
    PlatformParseError,
    RuntimeLoadError,
    SpecifierFormatError,
    TransportError,
    UnidentifiedKeyError,
    UnsupportedMediaTypeError,
)
from layer_crypt.models import CryptoConfig, DecryptConfig, Descriptor, EncryptConfig, LayerInfo, Platform
from layer_crypt.payload import ProcessorPayload, TypeRegistry, register_layer_tool_types
from layer_crypt.services.crypt_service import ImageCryptService

__version__ = "0.1.0"

__all__ = [
    # Main service
    "ImageCryptService",
    "LayerCryptConfig",
    # Composition
    "combine_crypto_configs",
    "attach_decrypt_config",
    "encrypt_with_gpg",
    "encrypt_with_jwe",
    "encrypt_with_pkcs7",
    "decrypt_with_gpg_priv_keys",
    "decrypt_with_priv_keys",
    "decrypt_with_x509s",
    # Side channel
    "ProcessorPayload",
    "TypeRegistry",
    "register_layer_tool_types",
    # Models
    "Platform",
    "Descriptor",
    "LayerInfo",
    "CryptoConfig",
    "EncryptConfig",
    "DecryptConfig",
    # Exceptions
    "LayerCryptError",
    "SpecifierFormatError",
    "KeyContentError",
    "UnidentifiedKeyError",
    "PasswordError",
    "PlatformParseError",
    "TransportError",
    "PayloadTypeError",
    "BackendError",
    "LeaseError",
    "GPGError",
    "MissingKeyError",
    "UnsupportedMediaTypeError",
    "RuntimeLoadError",
]
