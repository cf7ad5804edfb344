"""
Cryptographic configuration and key handling for layer crypt.

This module provides:
- Key content sniffing (public keys, certificates, private keys, GPG keyrings)
- Per-scheme crypto configs and their composition
- GnuPG keyring access for PGP-wrapped layer keys
- Interfaces of the external stores and crypto backends
"""

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
from layer_crypt.crypto.gpg import GnupgClient, GPGVault, get_gpg_private_keys
from layer_crypt.crypto.key_utils import (
    is_certificate,
    is_gpg_private_key_ring,
    is_private_key,
    is_public_key,
)
from layer_crypt.crypto.protocol import (
    ContentStore,
    GPGClient,
    ImageCryptoBackend,
    ImageStore,
    LayerDecryptor,
    LayerFilter,
    LeaseManager,
    Runtime,
)

__all__ = [
    "combine_crypto_configs",
    "attach_decrypt_config",
    "encrypt_with_gpg",
    "encrypt_with_jwe",
    "encrypt_with_pkcs7",
    "decrypt_with_gpg_priv_keys",
    "decrypt_with_priv_keys",
    "decrypt_with_x509s",
    "GnupgClient",
    "GPGVault",
    "get_gpg_private_keys",
    "is_public_key",
    "is_certificate",
    "is_private_key",
    "is_gpg_private_key_ring",
    "ContentStore",
    "ImageStore",
    "LeaseManager",
    "LayerDecryptor",
    "ImageCryptoBackend",
    "GPGClient",
    "LayerFilter",
    "Runtime",
]
