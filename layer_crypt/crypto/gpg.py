"""
GnuPG access for PGP-wrapped layer keys.

GnupgClient talks to the local gpg keyrings through python-gnupg. GPGVault
holds secret keyrings supplied as files. get_gpg_private_keys finds the
secret keys able to unwrap a set of PGP-encrypted layers.
"""

import getpass
from collections.abc import Callable, Iterable, Sequence
from typing import Self

import gnupg
import structlog

from layer_crypt.crypto.key_utils import load_gpg_keys
from layer_crypt.crypto.pgp_packets import format_key_id, get_key_ids_from_packets
from layer_crypt.crypto.protocol import GPGClient
from layer_crypt.exceptions import GPGError, KeyContentError, MissingKeyError
from layer_crypt.models.crypto import PGP_ANNOTATION, KeyMaterial
from layer_crypt.models.image import Descriptor

logger = structlog.get_logger(__name__)

_GPG_BINARIES: dict[str | None, tuple[str, ...]] = {
    "v1": ("gpg",),
    "v2": ("gpg2",),
    None: ("gpg2", "gpg"),
}

PassphrasePrompt = Callable[[str], str]


class GnupgClient:
    """
    GPGClient backed by the gpg binary.

    Example:
        client = GnupgClient.create("v2", "/home/me/.gnupg")
        pubring = client.read_pubring_file()
    """

    def __init__(self, gpg: gnupg.GPG) -> None:
        self._gpg = gpg

    @classmethod
    def create(cls, version: str | None = None, homedir: str | None = None) -> Self:
        """
        Create a client for the requested gpg version.

        Args:
            version: "v1", "v2" or None to try gpg2, then gpg.
            homedir: GnuPG home directory, or None for gpg's default.

        Raises:
            GPGError: If no usable gpg binary is found.
        """
        if version not in _GPG_BINARIES:
            msg = f"Unsupported gpg version: {version}"
            raise GPGError(msg)

        last_error: Exception | None = None
        for binary in _GPG_BINARIES[version]:
            try:
                gpg = gnupg.GPG(gpgbinary=binary, gnupghome=homedir)
            except (OSError, ValueError) as e:
                last_error = e
                continue
            logger.debug("Using gpg", binary=binary, homedir=homedir)
            return cls(gpg)

        msg = f"gpg is not available: {last_error}"
        raise GPGError(msg, version=version) from last_error

    def read_pubring_file(self) -> bytes:
        """Export every public key of the local keyring in binary form."""
        return self._gpg.export_keys([], armor=False) or b""

    def get_secret_key_details(self, key_id: int) -> tuple[bytes, bool]:
        keys = self._gpg.list_keys(secret=True, keys=[_hex_key_id(key_id)])
        if not keys:
            return b"", False
        uids = [uid for key in keys for uid in key.get("uids", [])]
        return "\n".join(uids).encode("utf-8"), True

    def get_gpg_private_key(self, key_id: int, passphrase: str) -> bytes:
        data = self._gpg.export_keys(
            _hex_key_id(key_id), secret=True, armor=False, passphrase=passphrase
        )
        if not data:
            msg = "Could not export secret key; wrong passphrase?"
            raise GPGError(msg, key_id=format_key_id(key_id))
        return data


def create_gpg_client(version: str | None, homedir: str | None) -> GPGClient | None:
    """Create a gpg client, or return None if gpg is not installed."""
    try:
        return GnupgClient.create(version, homedir)
    except GPGError as e:
        logger.debug("gpg not available", error=str(e))
        return None


class GPGVault:
    """Secret keyrings supplied as files, searchable by key ID."""

    def __init__(self) -> None:
        self._keyrings: list[tuple[bytes, frozenset[str]]] = []

    def add_secret_key_ring_data(self, data: bytes) -> None:
        """
        Add a secret keyring.

        Raises:
            KeyContentError: If the data is not an OpenPGP secret keyring.
        """
        try:
            keys = load_gpg_keys(data)
        except Exception as e:
            msg = f"Could not read GPG secret keyring: {e}"
            raise KeyContentError(msg) from e
        key_ids = {
            key_id
            for key in keys
            if not key.is_public
            for key_id in (key.fingerprint.keyid, *key.subkeys.keys())
        }
        if not key_ids:
            msg = "GPG keyring holds no secret key"
            raise KeyContentError(msg)
        self._keyrings.append((data, frozenset(k.upper() for k in key_ids)))

    def add_secret_key_ring_data_array(self, data_array: Iterable[bytes]) -> None:
        for data in data_array:
            self.add_secret_key_ring_data(data)

    def get_gpg_private_key(self, key_id: int) -> bytes | None:
        """Get the keyring holding the key, or None."""
        wanted = _hex_key_id(key_id)
        return next((data for data, ids in self._keyrings if wanted in ids), None)

    def __len__(self) -> int:
        return len(self._keyrings)


def get_gpg_private_keys(
    descs: Sequence[Descriptor],
    gpg_client: GPGClient | None,
    gpg_vault: GPGVault | None,
    must_find_key: bool,
    prompt: PassphrasePrompt = getpass.getpass,
) -> tuple[KeyMaterial, ...]:
    """
    Find the secret keys needed to unwrap PGP-encrypted layers.

    Keys are looked up in the vault if one is given, otherwise in the local
    gpg keyring, prompting for each key's passphrase.

    Args:
        descs: Layer descriptors, carrying the PGP annotation if PGP-encrypted.
        gpg_client: Local gpg access.
        gpg_vault: Secret keyrings from files.
        must_find_key: Fail if no key is found for a PGP-encrypted layer.
        prompt: Reads a passphrase given a prompt text.

    Returns:
        The secret keys with their passphrases, without duplicates.

    Raises:
        MissingKeyError: If must_find_key is set and a layer cannot be decrypted.
        GPGError: If neither a client nor a vault is given.
    """
    keys: list[KeyMaterial] = []
    seen: set[int] = set()

    for desc in descs:
        b64_pgp_packets = desc.annotations.get(PGP_ANNOTATION)
        if not b64_pgp_packets:
            continue
        key_ids = get_key_ids_from_packets(b64_pgp_packets)

        found = False
        for key_id in key_ids:
            if key_id in seen:
                found = True
                break
            key = _find_key(key_id, gpg_client, gpg_vault, prompt)
            if key is not None:
                keys.append(key)
                seen.add(key_id)
                found = True
                break

        if not found and must_find_key:
            ids = tuple(format_key_id(k) for k in key_ids)
            msg = (
                f"Missing key for decryption of layer {desc.digest} of {desc.platform}. "
                f"Need one of the following keys: {', '.join(ids)}"
            )
            raise MissingKeyError(msg, digest=desc.digest, key_ids=ids)

    return tuple(keys)


def _find_key(
    key_id: int,
    gpg_client: GPGClient | None,
    gpg_vault: GPGVault | None,
    prompt: PassphrasePrompt,
) -> KeyMaterial | None:
    if gpg_vault is not None:
        data = gpg_vault.get_gpg_private_key(key_id)
        return KeyMaterial(data=data) if data else None

    if gpg_client is None:
        msg = "No GPG client nor vault to look up keys"
        raise GPGError(msg)

    key_info, have_key = gpg_client.get_secret_key_details(key_id)
    if not have_key:
        return None
    passphrase = prompt(
        f"Passphrase required for key id {format_key_id(key_id)}:\n"
        f"{key_info.decode('utf-8', 'replace')}\n"
        f"Enter passphrase for key with id {format_key_id(key_id)}: "
    )
    data = gpg_client.get_gpg_private_key(key_id, passphrase)
    logger.debug("Exported secret key", key_id=format_key_id(key_id))
    return KeyMaterial(data=data, password=passphrase.encode("utf-8"))


def _hex_key_id(key_id: int) -> str:
    return f"{key_id:016X}"
