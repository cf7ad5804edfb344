"""
Crypto configs from command-line options.

Turns recipient and key specifiers into the combined CryptoConfig used to
encrypt or decrypt an image.
"""

import getpass
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from layer_crypt.crypto.config import (
    combine_crypto_configs,
    decrypt_with_gpg_priv_keys,
    decrypt_with_priv_keys,
    decrypt_with_x509s,
    encrypt_with_gpg,
    encrypt_with_jwe,
    encrypt_with_pkcs7,
)
from layer_crypt.crypto.gpg import GPGVault, PassphrasePrompt, get_gpg_private_keys
from layer_crypt.crypto.protocol import GPGClient
from layer_crypt.exceptions import GPGError
from layer_crypt.models.crypto import CryptoConfig, KeyMaterial
from layer_crypt.models.image import Descriptor
from layer_crypt.recipients import process_private_key_files, process_recipient_keys

logger = structlog.get_logger(__name__)

_DEFAULT_PASSWORD_FD_READ_SIZE = 64


@dataclass(frozen=True, kw_only=True)
class CryptOptions:
    """
    Key and layer selection options of the encrypt and decrypt commands.

    Attributes:
        recipients: "protocol:value" recipients to encrypt for.
        keys: "<file>[:<password>]" private keys for decryption.
        dec_recipients: "pkcs7:<cert>" recipients needed for PKCS7 decryption.
        layers: Signed layer selectors. Empty selects every layer.
        platforms: Platform specifiers. Empty selects every platform.
    """

    recipients: tuple[str, ...] = ()
    keys: tuple[str, ...] = ()
    dec_recipients: tuple[str, ...] = ()
    layers: tuple[int, ...] = ()
    platforms: tuple[str, ...] = ()


def create_encrypt_crypto_config(
    recipients: Sequence[str], gpg_client: GPGClient | None
) -> CryptoConfig:
    """
    Build the encrypt side for a set of recipients.

    PGP recipients are looked up in the public keyring exported from gpg.

    Args:
        recipients: "protocol:value" recipients.
        gpg_client: Local gpg access, or None if gpg is not installed.

    Returns:
        The combined encrypt config.

    Raises:
        GPGError: If PGP recipients are given but gpg is not available.
    """
    recipient_keys = process_recipient_keys(recipients)

    configs: list[CryptoConfig] = []
    if recipient_keys.gpg_recipients:
        if gpg_client is None:
            msg = "gpg is required to encrypt for PGP recipients"
            raise GPGError(msg, recipients=len(recipient_keys.gpg_recipients))
        configs.append(
            encrypt_with_gpg(recipient_keys.gpg_recipients, gpg_client.read_pubring_file())
        )

    configs.append(encrypt_with_pkcs7(recipient_keys.certificates))
    configs.append(encrypt_with_jwe(recipient_keys.public_keys))
    return combine_crypto_configs(configs)


def create_decrypt_crypto_config(
    options: CryptOptions,
    descs: Sequence[Descriptor] | None,
    gpg_client: GPGClient | None,
    *,
    fd_read_size: int = _DEFAULT_PASSWORD_FD_READ_SIZE,
    prompt: PassphrasePrompt = getpass.getpass,
) -> CryptoConfig:
    """
    Build the decrypt side from private keys and decryption recipients.

    GPG secret keyrings given as key files are used as they are. When gpg is
    installed and no private key file is given at all, the PGP keys needed by
    the layers in descs are taken from the local gpg keyring.

    Args:
        options: Command options holding keys and dec_recipients.
        descs: Selected layer descriptors, or None to skip the gpg lookup.
        gpg_client: Local gpg access, or None if gpg is not installed.
        fd_read_size: Maximum number of bytes read for fd= passwords.
        prompt: Reads a gpg key passphrase given a prompt text.

    Returns:
        The combined decrypt config.

    Raises:
        MissingKeyError: If no gpg key is found for a PGP-encrypted layer.
    """
    x509s = process_recipient_keys(options.dec_recipients).certificates
    private_keys = process_private_key_files(options.keys, fd_read_size=fd_read_size)

    configs: list[CryptoConfig] = []
    if private_keys.gpg_secret_key_rings:
        configs.append(decrypt_with_gpg_priv_keys(private_keys.gpg_secret_key_rings))
    elif not private_keys.private_keys and descs is not None and gpg_client is not None:
        gpg_keys = get_gpg_private_keys_for_layers(
            descs, gpg_client, (), must_find_key=True, prompt=prompt
        )
        logger.debug("Using keys from gpg keyring", count=len(gpg_keys))
        configs.append(decrypt_with_gpg_priv_keys(gpg_keys))

    configs.append(decrypt_with_x509s(x509s))
    configs.append(decrypt_with_priv_keys(private_keys.private_keys))
    return combine_crypto_configs(configs)


def get_gpg_private_keys_for_layers(
    descs: Sequence[Descriptor],
    gpg_client: GPGClient,
    gpg_secret_key_rings: Sequence[KeyMaterial],
    *,
    must_find_key: bool,
    prompt: PassphrasePrompt = getpass.getpass,
) -> tuple[KeyMaterial, ...]:
    """
    Find the PGP keys able to decrypt the given layers.

    Secret keyrings, if given, are searched instead of the gpg keyring.
    """
    gpg_vault = None
    if gpg_secret_key_rings:
        gpg_vault = GPGVault()
        gpg_vault.add_secret_key_ring_data_array(key.data for key in gpg_secret_key_rings)
    return get_gpg_private_keys(descs, gpg_client, gpg_vault, must_find_key, prompt)
