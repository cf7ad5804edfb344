import base64
from unittest.mock import Mock, patch

import pgpy
import pytest

from layer_crypt.crypto.gpg import (
    GnupgClient,
    GPGVault,
    create_gpg_client,
    get_gpg_private_keys,
)
from layer_crypt.exceptions import GPGError, KeyContentError, MissingKeyError
from layer_crypt.models.crypto import PGP_ANNOTATION, KeyMaterial
from layer_crypt.models.image import MEDIA_TYPE_OCI_LAYER_GZIP_ENCRYPTED, Descriptor, Platform


def _pgp_annotation(*key_ids: int) -> str:
    messages = []
    for key_id in key_ids:
        body = bytes([3]) + key_id.to_bytes(8, "big") + bytes([1]) + b"wrapped"
        seipd = b"layer key"
        message = bytes([0xC1, len(body)]) + body + bytes([0xD2, len(seipd)]) + seipd
        messages.append(base64.b64encode(message).decode())
    return ",".join(messages)


def _encrypted_layer(digest: str, *key_ids: int) -> Descriptor:
    annotations = {PGP_ANNOTATION: _pgp_annotation(*key_ids)} if key_ids else {}
    return Descriptor(
        media_type=MEDIA_TYPE_OCI_LAYER_GZIP_ENCRYPTED,
        digest=digest,
        size=10,
        annotations=annotations,
        platform=Platform(os="linux", architecture="amd64"),
    )


def _key_id(keyid_hex: str) -> int:
    return int(keyid_hex, 16)


def test_gpg_vault_finds_primary_key_and_subkeys(pgp_key: pgpy.PGPKey, pgp_secret_key_ring: bytes) -> None:
    vault = GPGVault()
    vault.add_secret_key_ring_data(pgp_secret_key_ring)

    subkey_id = next(iter(pgp_key.subkeys))

    assert len(vault) == 1
    assert vault.get_gpg_private_key(_key_id(pgp_key.fingerprint.keyid)) == pgp_secret_key_ring
    assert vault.get_gpg_private_key(_key_id(subkey_id)) == pgp_secret_key_ring
    assert vault.get_gpg_private_key(0x1234) is None


def test_gpg_vault_indexes_every_key_of_a_keyring(
    pgp_key: pgpy.PGPKey, second_pgp_key: pgpy.PGPKey, two_key_secret_key_ring: bytes
) -> None:
    vault = GPGVault()
    vault.add_secret_key_ring_data(two_key_secret_key_ring)

    assert vault.get_gpg_private_key(_key_id(pgp_key.fingerprint.keyid)) == two_key_secret_key_ring
    assert vault.get_gpg_private_key(_key_id(second_pgp_key.fingerprint.keyid)) == two_key_secret_key_ring


def test_get_gpg_private_keys_finds_second_key_of_keyring(
    second_pgp_key: pgpy.PGPKey, two_key_secret_key_ring: bytes
) -> None:
    vault = GPGVault()
    vault.add_secret_key_ring_data(two_key_secret_key_ring)
    layer = _encrypted_layer("sha256:a", _key_id(second_pgp_key.fingerprint.keyid))

    keys = get_gpg_private_keys([layer], None, vault, must_find_key=True)

    assert keys == (KeyMaterial(data=two_key_secret_key_ring),)


def test_gpg_vault_rejects_public_keyring(pgp_key: pgpy.PGPKey) -> None:
    vault = GPGVault()

    with pytest.raises(KeyContentError, match="no secret key"):
        vault.add_secret_key_ring_data(bytes(pgp_key.pubkey))


def test_gpg_vault_rejects_garbage() -> None:
    with pytest.raises(KeyContentError, match="Could not read GPG secret keyring"):
        GPGVault().add_secret_key_ring_data(b"garbage")


def test_get_gpg_private_keys_uses_vault(pgp_key: pgpy.PGPKey, pgp_secret_key_ring: bytes) -> None:
    vault = GPGVault()
    vault.add_secret_key_ring_data_array([pgp_secret_key_ring])
    subkey_id = _key_id(next(iter(pgp_key.subkeys)))
    prompt = Mock()

    keys = get_gpg_private_keys(
        [_encrypted_layer("sha256:a", subkey_id)], None, vault, True, prompt
    )

    assert keys == (KeyMaterial(data=pgp_secret_key_ring),)
    prompt.assert_not_called()


def test_get_gpg_private_keys_prompts_for_gpg_keyring_passphrase() -> None:
    client = Mock()
    client.get_secret_key_details.return_value = (b"Alice <alice@example.com>", True)
    client.get_gpg_private_key.return_value = b"exported-secret-key"
    prompt = Mock(return_value="passphrase")

    keys = get_gpg_private_keys([_encrypted_layer("sha256:a", 0xABCDEF)], client, None, True, prompt)

    assert keys == (KeyMaterial(data=b"exported-secret-key", password=b"passphrase"),)
    client.get_gpg_private_key.assert_called_once_with(0xABCDEF, "passphrase")
    assert "0xabcdef" in prompt.call_args.args[0]


def test_get_gpg_private_keys_skips_layers_without_pgp_annotation() -> None:
    client = Mock()

    keys = get_gpg_private_keys([_encrypted_layer("sha256:a")], client, None, True, Mock())

    assert keys == ()
    client.get_secret_key_details.assert_not_called()


def test_get_gpg_private_keys_looks_up_each_key_once() -> None:
    client = Mock()
    client.get_secret_key_details.return_value = (b"Alice", True)
    client.get_gpg_private_key.return_value = b"secret"

    keys = get_gpg_private_keys(
        [_encrypted_layer("sha256:a", 0x11), _encrypted_layer("sha256:b", 0x11)],
        client,
        None,
        True,
        Mock(return_value="pw"),
    )

    assert len(keys) == 1
    client.get_gpg_private_key.assert_called_once()


def test_get_gpg_private_keys_tries_next_key_id() -> None:
    client = Mock()
    client.get_secret_key_details.side_effect = [(b"", False), (b"Bob", True)]
    client.get_gpg_private_key.return_value = b"bob-secret"

    keys = get_gpg_private_keys(
        [_encrypted_layer("sha256:a", 0x11, 0x22)], client, None, True, Mock(return_value="pw")
    )

    assert keys == (KeyMaterial(data=b"bob-secret", password=b"pw"),)
    client.get_gpg_private_key.assert_called_once_with(0x22, "pw")


def test_get_gpg_private_keys_raises_missing_key() -> None:
    client = Mock()
    client.get_secret_key_details.return_value = (b"", False)

    with pytest.raises(MissingKeyError, match="Need one of the following keys") as exc_info:
        get_gpg_private_keys([_encrypted_layer("sha256:a", 0x11, 0x22)], client, None, True, Mock())

    assert exc_info.value.digest == "sha256:a"
    assert exc_info.value.key_ids == ("0x11", "0x22")


def test_get_gpg_private_keys_tolerates_missing_key_when_not_required() -> None:
    client = Mock()
    client.get_secret_key_details.return_value = (b"", False)

    keys = get_gpg_private_keys([_encrypted_layer("sha256:a", 0x11)], client, None, False, Mock())

    assert keys == ()


def test_get_gpg_private_keys_requires_client_or_vault() -> None:
    with pytest.raises(GPGError):
        get_gpg_private_keys([_encrypted_layer("sha256:a", 0x11)], None, None, True, Mock())


def test_gnupg_client_exports_keys() -> None:
    gpg = Mock()
    gpg.export_keys.return_value = b"pubring"
    client = GnupgClient(gpg)

    assert client.read_pubring_file() == b"pubring"
    gpg.export_keys.assert_called_once_with([], armor=False)


def test_gnupg_client_secret_key_details() -> None:
    gpg = Mock()
    gpg.list_keys.return_value = [{"uids": ["Alice <alice@example.com>"]}]
    client = GnupgClient(gpg)

    info, found = client.get_secret_key_details(0xABCDEF)

    assert found is True
    assert info == b"Alice <alice@example.com>"
    gpg.list_keys.assert_called_once_with(secret=True, keys=["0000000000ABCDEF"])


def test_gnupg_client_secret_key_details_not_found() -> None:
    gpg = Mock()
    gpg.list_keys.return_value = []

    assert GnupgClient(gpg).get_secret_key_details(0x1) == (b"", False)


def test_gnupg_client_export_secret_key_failure() -> None:
    gpg = Mock()
    gpg.export_keys.return_value = b""

    with pytest.raises(GPGError, match="wrong passphrase"):
        GnupgClient(gpg).get_gpg_private_key(0x1, "bad")


def test_gnupg_client_create_falls_back_to_gpg() -> None:
    with patch("layer_crypt.crypto.gpg.gnupg.GPG", side_effect=[OSError("no gpg2"), Mock()]) as gpg:
        GnupgClient.create(None, "/tmp/gnupg")

    assert [c.kwargs["gpgbinary"] for c in gpg.call_args_list] == ["gpg2", "gpg"]


def test_create_gpg_client_returns_none_without_gpg() -> None:
    with patch("layer_crypt.crypto.gpg.gnupg.GPG", side_effect=OSError("not found")):
        assert create_gpg_client("v2", None) is None


def test_gnupg_client_create_rejects_unknown_version() -> None:
    with pytest.raises(GPGError, match="Unsupported gpg version"):
        GnupgClient.create("v9")
