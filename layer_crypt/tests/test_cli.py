from unittest.mock import Mock, patch

import pytest

from layer_crypt.cli import build_parser, main
from layer_crypt.models.crypto import Scheme
from layer_crypt.models.image import MEDIA_TYPE_OCI_INDEX, Descriptor
from layer_crypt.tests.utils.image_fixtures import MemoryContentStore, multi_platform_image

NEW_TARGET = Descriptor(media_type=MEDIA_TYPE_OCI_INDEX, digest="sha256:new", size=512)


@pytest.fixture
def runtime() -> Mock:
    content_store = MemoryContentStore()
    image, _, _ = multi_platform_image(content_store)
    runtime = Mock()
    runtime.content_store = content_store
    runtime.image_store.get.return_value = image
    runtime.image_store.create.side_effect = lambda record: record
    runtime.image_store.update.side_effect = lambda record: record
    runtime.leases.create.return_value = "lease-1"
    return runtime


@pytest.fixture
def patched_runtime(runtime: Mock):
    with (
        patch("layer_crypt.cli.load_runtime", return_value=runtime) as load,
        patch("layer_crypt.cli.create_gpg_client", return_value=None),
    ):
        yield load


def test_parser_accepts_negative_layers() -> None:
    args = build_parser().parse_args(
        ["encrypt", "app:latest", "--recipient", "jwe:/k.pem", "--layer", "-1", "--layer", "0"]
    )

    assert args.layer == [-1, 0]
    assert args.new_name is None


def test_encrypt_without_recipients_fails(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--runtime", "x:y", "encrypt", "app:latest"]) == 1

    assert "no recipients given -- nothing to do" in capsys.readouterr().err


def test_encrypt_creates_new_image(
    patched_runtime: Mock, runtime: Mock, write_file, public_key_pem: bytes, capsys
) -> None:
    pub = write_file("pub.pem", public_key_pem)
    runtime.crypto.encrypt_image.return_value = (NEW_TARGET, True)

    code = main(
        [
            "--runtime",
            "host.runtime:make",
            "encrypt",
            "app:latest",
            "app:enc",
            "--recipient",
            f"jwe:{pub}",
            "--platform",
            "linux/amd64",
            "--layer",
            "-1",
        ]
    )

    assert code == 0
    assert patched_runtime.call_args.args[0] == "host.runtime:make"
    _, _, config, _ = runtime.crypto.encrypt_image.call_args.args
    assert config.encrypt_config.backend(Scheme.JWE).public_keys == (public_key_pem,)
    runtime.image_store.create.assert_called_once()
    assert capsys.readouterr().out.strip().endswith("app:enc")


def test_encrypt_unmodified_image_succeeds(
    patched_runtime: Mock, runtime: Mock, write_file, public_key_pem: bytes
) -> None:
    pub = write_file("pub.pem", public_key_pem)
    runtime.crypto.encrypt_image.return_value = (runtime.image_store.get.return_value.target, False)

    assert main(["--runtime", "x:y", "encrypt", "app:latest", "--recipient", f"jwe:{pub}"]) == 0

    runtime.image_store.create.assert_not_called()
    runtime.image_store.update.assert_not_called()


def test_decrypt_updates_image_in_place(
    patched_runtime: Mock, runtime: Mock, write_file, private_key_pem: bytes
) -> None:
    key = write_file("priv.pem", private_key_pem)
    runtime.crypto.decrypt_image.return_value = (NEW_TARGET, True)

    assert main(["--runtime", "x:y", "decrypt", "app:latest", "--key", key]) == 0

    _, _, config, _ = runtime.crypto.decrypt_image.call_args.args
    assert config.decrypt_config.backend(Scheme.JWE) is not None
    runtime.image_store.update.assert_called_once()


def test_invalid_platform_fails(patched_runtime: Mock, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--runtime", "x:y", "decrypt", "app:latest", "--platform", "linux/*"]) == 1

    assert "wildcards" in capsys.readouterr().err


def test_missing_runtime_fails(capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LAYER_CRYPT_RUNTIME", raising=False)

    assert main(["decrypt", "app:latest"]) == 1

    assert "No runtime configured" in capsys.readouterr().err


def test_stream_uses_side_channel_defaults(patched_runtime: Mock, runtime: Mock) -> None:
    with patch("layer_crypt.cli.stream_decrypted_layer") as stream:
        assert main(["--runtime", "x:y", "stream"]) == 0

    registry, decryptor = stream.call_args.args
    assert decryptor is runtime.crypto
    assert stream.call_args.kwargs == {"config_fd": 3, "chunk_size": 10 * 1024}
