"""
Crypto config composition.

Each scheme contributes its own CryptoConfig; combine_crypto_configs merges
them into one config able to encrypt or decrypt with any of them.
"""

from collections.abc import Iterable, Sequence

from layer_crypt.models.crypto import (
    CryptoConfig,
    DecryptConfig,
    EncryptConfig,
    JweDecryptBackend,
    JweEncryptBackend,
    KeyMaterial,
    PgpDecryptBackend,
    PgpEncryptBackend,
    Pkcs7DecryptBackend,
    Pkcs7EncryptBackend,
    union_backends,
    union_ordered,
)


def encrypt_with_gpg(gpg_recipients: Iterable[bytes], gpg_pubring_file: bytes) -> CryptoConfig:
    """Encrypt to PGP recipients looked up in a public keyring."""
    backend = PgpEncryptBackend(
        recipients=union_ordered((), gpg_recipients),
        pubrings=(gpg_pubring_file,) if gpg_pubring_file else (),
    )
    return _encrypting(backend)


def encrypt_with_jwe(public_keys: Iterable[bytes]) -> CryptoConfig:
    """Encrypt to public keys using JWE."""
    return _encrypting(JweEncryptBackend(public_keys=union_ordered((), public_keys)))


def encrypt_with_pkcs7(x509s: Iterable[bytes]) -> CryptoConfig:
    """Encrypt to X.509 certificates using PKCS7."""
    return _encrypting(Pkcs7EncryptBackend(certificates=union_ordered((), x509s)))


def decrypt_with_gpg_priv_keys(private_keys: Iterable[KeyMaterial]) -> CryptoConfig:
    """Decrypt with GPG secret keys or keyrings."""
    return _decrypting(PgpDecryptBackend(private_keys=union_ordered((), private_keys)))


def decrypt_with_priv_keys(private_keys: Iterable[KeyMaterial]) -> CryptoConfig:
    """Decrypt with PEM/DER private keys."""
    return _decrypting(JweDecryptBackend(private_keys=union_ordered((), private_keys)))


def decrypt_with_x509s(x509s: Iterable[bytes]) -> CryptoConfig:
    """Decrypt PKCS7 envelopes addressed to the given certificates."""
    return _decrypting(Pkcs7DecryptBackend(certificates=union_ordered((), x509s)))


def combine_crypto_configs(configs: Sequence[CryptoConfig]) -> CryptoConfig:
    """
    Merge configs into one.

    Backends are unioned per scheme in the order they are supplied, and key
    material seen twice is kept once. A side (encrypt or decrypt) is present
    in the result if any input has it.

    Args:
        configs: Configs to combine. Empty configs are neutral.

    Returns:
        The combined config.
    """
    encrypt_configs = [c.encrypt_config for c in configs if c.encrypt_config is not None]
    decrypt_configs = [c.decrypt_config for c in configs if c.decrypt_config is not None]

    encrypt_config = None
    if encrypt_configs:
        encrypt_config = EncryptConfig(
            backends=union_backends(*(ec.backends for ec in encrypt_configs)),
            decrypt_config=DecryptConfig(
                backends=union_backends(*(ec.decrypt_config.backends for ec in encrypt_configs))
            ),
        )

    decrypt_config = None
    if decrypt_configs:
        decrypt_config = DecryptConfig(
            backends=union_backends(*(dc.backends for dc in decrypt_configs))
        )

    return CryptoConfig(encrypt_config=encrypt_config, decrypt_config=decrypt_config)


def attach_decrypt_config(encrypt: CryptoConfig, decrypt: CryptoConfig) -> CryptoConfig:
    """
    Let an encrypting config also unwrap existing layer keys.

    Used when adding recipients to an already encrypted image: the existing
    layer key is unwrapped with the decrypt side and rewrapped for the old and
    new recipients.

    Args:
        encrypt: Config with an encrypt side.
        decrypt: Config whose decrypt side is attached.

    Returns:
        A copy of encrypt with the decrypt side attached.
    """
    encrypt_config = encrypt.encrypt_config or EncryptConfig()
    return CryptoConfig(
        encrypt_config=encrypt_config.attach_decrypt_config(decrypt.decrypt_config),
        decrypt_config=encrypt.decrypt_config,
    )


def _encrypting(backend: PgpEncryptBackend | JweEncryptBackend | Pkcs7EncryptBackend) -> CryptoConfig:
    return CryptoConfig(encrypt_config=EncryptConfig(backends=union_backends([backend])))


def _decrypting(backend: PgpDecryptBackend | JweDecryptBackend | Pkcs7DecryptBackend) -> CryptoConfig:
    return CryptoConfig(decrypt_config=DecryptConfig(backends=union_backends([backend])))
