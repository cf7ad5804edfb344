"""
Image-related domain models.

Field names on the wire follow the OCI image-spec JSON encoding.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Self

MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_OCI_LAYER = "application/vnd.oci.image.layer.v1.tar"
MEDIA_TYPE_OCI_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
MEDIA_TYPE_OCI_LAYER_ENCRYPTED = "application/vnd.oci.image.layer.v1.tar+encrypted"
MEDIA_TYPE_OCI_LAYER_GZIP_ENCRYPTED = "application/vnd.oci.image.layer.v1.tar+gzip+encrypted"

MEDIA_TYPE_DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_CONFIG = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_DOCKER_LAYER = "application/vnd.docker.image.rootfs.diff.tar"
MEDIA_TYPE_DOCKER_LAYER_GZIP = "application/vnd.docker.image.rootfs.diff.tar.gzip"

INDEX_MEDIA_TYPES = frozenset({MEDIA_TYPE_OCI_INDEX, MEDIA_TYPE_DOCKER_MANIFEST_LIST})
MANIFEST_MEDIA_TYPES = frozenset({MEDIA_TYPE_OCI_MANIFEST, MEDIA_TYPE_DOCKER_MANIFEST})
CONFIG_MEDIA_TYPES = frozenset({MEDIA_TYPE_OCI_CONFIG, MEDIA_TYPE_DOCKER_CONFIG})
LAYER_MEDIA_TYPES = frozenset(
    {
        MEDIA_TYPE_OCI_LAYER,
        MEDIA_TYPE_OCI_LAYER_GZIP,
        MEDIA_TYPE_OCI_LAYER_ENCRYPTED,
        MEDIA_TYPE_OCI_LAYER_GZIP_ENCRYPTED,
        MEDIA_TYPE_DOCKER_LAYER,
        MEDIA_TYPE_DOCKER_LAYER_GZIP,
    }
)


@dataclass(frozen=True, kw_only=True)
class Platform:
    """
    Target platform of an image manifest.

    Equality is exact field equality. Use layer_crypt.platforms for
    normalized matching.
    """

    os: str
    architecture: str
    variant: str = ""
    os_version: str = ""
    os_features: tuple[str, ...] = ()

    def __str__(self) -> str:
        parts = [self.os, self.architecture]
        if self.variant:
            parts.append(self.variant)
        return "/".join(parts)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"architecture": self.architecture, "os": self.os}
        if self.os_version:
            result["os.version"] = self.os_version
        if self.os_features:
            result["os.features"] = list(self.os_features)
        if self.variant:
            result["variant"] = self.variant
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            os=data.get("os", ""),
            architecture=data.get("architecture", ""),
            variant=data.get("variant", ""),
            os_version=data.get("os.version", ""),
            os_features=tuple(data.get("os.features") or ()),
        )


@dataclass(frozen=True, kw_only=True)
class Descriptor:
    """
    Content address of a blob, optionally tagged with its target platform.

    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md
    """

    media_type: str
    digest: str
    size: int
    urls: tuple[str, ...] = ()
    annotations: Mapping[str, str] = field(default_factory=dict)
    platform: Platform | None = None

    def __hash__(self) -> int:
        return hash((self.media_type, self.digest, self.size))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "mediaType": self.media_type,
            "digest": self.digest,
            "size": self.size,
        }
        if self.urls:
            result["urls"] = list(self.urls)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.platform is not None:
            result["platform"] = self.platform.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        platform = data.get("platform")
        return cls(
            media_type=data.get("mediaType", ""),
            digest=data["digest"],
            size=int(data.get("size", 0)),
            urls=tuple(data.get("urls") or ()),
            annotations=dict(data.get("annotations") or {}),
            platform=Platform.from_dict(platform) if platform else None,
        )

    def with_platform(self, platform: Platform | None) -> Self:
        """Return a copy tagged with the given platform."""
        return type(self)(
            media_type=self.media_type,
            digest=self.digest,
            size=self.size,
            urls=self.urls,
            annotations=self.annotations,
            platform=platform,
        )


@dataclass(frozen=True, kw_only=True)
class LayerInfo:
    """
    A layer descriptor with its zero-based index within its platform's layer sequence.
    """

    index: int
    descriptor: Descriptor


@dataclass(frozen=True, kw_only=True)
class ImageRecord:
    """
    A named image as registered in the image store.

    Attributes:
        name: Image reference name.
        target: Descriptor of the top-level index or manifest.
        labels: Image labels, carried over to re-registered images.
    """

    name: str
    target: Descriptor
    labels: Mapping[str, str] = field(default_factory=dict)
