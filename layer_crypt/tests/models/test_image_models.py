from layer_crypt.models.image import MEDIA_TYPE_OCI_LAYER_GZIP, Descriptor, Platform


def test_platform_str() -> None:
    assert str(Platform(os="linux", architecture="amd64")) == "linux/amd64"
    assert str(Platform(os="linux", architecture="arm64", variant="v8")) == "linux/arm64/v8"


def test_platform_to_dict_uses_oci_field_names() -> None:
    platform = Platform(
        os="windows",
        architecture="amd64",
        os_version="10.0.17763",
        os_features=("win32k",),
    )

    assert platform.to_dict() == {
        "architecture": "amd64",
        "os": "windows",
        "os.version": "10.0.17763",
        "os.features": ["win32k"],
    }
    assert Platform.from_dict(platform.to_dict()) == platform


def test_descriptor_to_dict_uses_oci_field_names() -> None:
    desc = Descriptor(
        media_type=MEDIA_TYPE_OCI_LAYER_GZIP,
        digest="sha256:abc",
        size=42,
        annotations={"org.opencontainers.image.enc.keys.pgp": "hQEMA"},
        platform=Platform(os="linux", architecture="amd64"),
    )

    assert desc.to_dict() == {
        "mediaType": MEDIA_TYPE_OCI_LAYER_GZIP,
        "digest": "sha256:abc",
        "size": 42,
        "annotations": {"org.opencontainers.image.enc.keys.pgp": "hQEMA"},
        "platform": {"architecture": "amd64", "os": "linux"},
    }
    assert Descriptor.from_dict(desc.to_dict()) == desc


def test_descriptor_minimal_to_dict() -> None:
    desc = Descriptor(media_type=MEDIA_TYPE_OCI_LAYER_GZIP, digest="sha256:abc", size=1)

    assert desc.to_dict() == {"mediaType": MEDIA_TYPE_OCI_LAYER_GZIP, "digest": "sha256:abc", "size": 1}


def test_descriptor_with_platform_keeps_content_address() -> None:
    desc = Descriptor(media_type=MEDIA_TYPE_OCI_LAYER_GZIP, digest="sha256:abc", size=1)
    platform = Platform(os="linux", architecture="amd64")

    tagged = desc.with_platform(platform)

    assert tagged.platform == platform
    assert tagged.digest == desc.digest
    assert hash(tagged) == hash(desc)
