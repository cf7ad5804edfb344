"""
Image manifest walking.

Flattens an image's index/manifest tree into the ordered list of its layer
descriptors, each tagged with the platform it belongs to.
"""

import json
from typing import Any

import structlog

from layer_crypt import platforms
from layer_crypt.crypto.protocol import ContentStore
from layer_crypt.exceptions import LayerCryptError, UnsupportedMediaTypeError
from layer_crypt.models.image import (
    CONFIG_MEDIA_TYPES,
    INDEX_MEDIA_TYPES,
    LAYER_MEDIA_TYPES,
    MANIFEST_MEDIA_TYPES,
    Descriptor,
    Platform,
)

logger = structlog.get_logger(__name__)


def get_image_layer_descriptors(store: ContentStore, desc: Descriptor) -> list[Descriptor]:
    """
    Get the layer descriptors of an image in manifest order.

    Layers are tagged with the platform of the manifest descriptor that led to
    them. Images without platform information get the host's default platform.

    Args:
        store: Content store holding the image blobs.
        desc: Target descriptor of the image (index or manifest).

    Returns:
        Layer descriptors across all platforms.

    Raises:
        UnsupportedMediaTypeError: If a blob of unknown media type is referenced.
    """
    return _walk(store, desc, platforms.default_spec())


def _walk(store: ContentStore, desc: Descriptor, platform: Platform) -> list[Descriptor]:
    if desc.media_type in CONFIG_MEDIA_TYPES:
        return []
    if desc.media_type not in INDEX_MEDIA_TYPES and desc.media_type not in MANIFEST_MEDIA_TYPES:
        msg = f"Unhandled media type {desc.media_type}"
        raise UnsupportedMediaTypeError(msg, media_type=desc.media_type)

    if desc.platform is not None:
        platform = desc.platform

    layers: list[Descriptor] = []
    for child in _children(store, desc):
        if child.media_type in LAYER_MEDIA_TYPES:
            layers.append(child.with_platform(platform))
        else:
            layers.extend(_walk(store, child, platform))
    return layers


def _children(store: ContentStore, desc: Descriptor) -> list[Descriptor]:
    document = _read_json(store, desc)
    if desc.media_type in INDEX_MEDIA_TYPES:
        entries = document.get("manifests") or []
    else:
        config = document.get("config")
        entries = [config] if config else []
        entries.extend(document.get("layers") or [])
    logger.debug("Read image blob", digest=desc.digest, children=len(entries))
    return [Descriptor.from_dict(entry) for entry in entries]


def _read_json(store: ContentStore, desc: Descriptor) -> dict[str, Any]:
    blob = store.read_blob(desc)
    try:
        return json.loads(blob)
    except ValueError as e:
        msg = f"Failed to parse image blob: {e}"
        raise LayerCryptError(msg, digest=desc.digest) from e
