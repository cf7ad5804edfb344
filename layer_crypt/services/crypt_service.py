"""
Image encryption service.

Encrypts or decrypts the selected layers of an image and registers the
result as an image record.
"""

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager

import structlog

from layer_crypt.crypto.protocol import (
    ContentStore,
    ImageCryptoBackend,
    ImageStore,
    LayerFilter,
    LeaseManager,
)
from layer_crypt.exceptions import LeaseError
from layer_crypt.images import get_image_layer_descriptors
from layer_crypt.layers import create_layer_filter, filter_layer_descriptors
from layer_crypt.models.crypto import CryptoConfig
from layer_crypt.models.image import Descriptor, ImageRecord, LayerInfo, Platform

logger = structlog.get_logger(__name__)

_Transform = Callable[..., tuple[Descriptor, bool]]


class ImageCryptService:
    """
    Service for encrypting and decrypting image layers.

    Layers are selected per platform by index (negative indices count from the
    topmost layer) and by platform. Blobs written during an operation are
    covered by a lease for its whole duration.

    Example:
        service = ImageCryptService(runtime.content_store, runtime.image_store,
                                    runtime.leases, runtime.crypto)
        image = service.encrypt_image(image, "registry/app:enc", config, layers=[-1])
    """

    def __init__(
        self,
        content_store: ContentStore,
        image_store: ImageStore,
        leases: LeaseManager,
        backend: ImageCryptoBackend,
    ) -> None:
        """
        Args:
            content_store: Blob store holding the image content.
            image_store: Image metadata service.
            leases: Lease manager protecting written blobs.
            backend: Per-layer encryption and decryption.
        """
        self._content_store = content_store
        self._image_store = image_store
        self._leases = leases
        self._backend = backend

    def get_image_layer_infos(
        self,
        image: ImageRecord,
        *,
        platforms: Sequence[Platform] = (),
        layers: Sequence[int] = (),
    ) -> tuple[list[LayerInfo], list[Descriptor]]:
        """
        Get the layers of an image selected by index and platform.

        Args:
            image: The image.
            platforms: Requested platforms. Empty selects every platform.
            layers: Signed layer selectors. Empty selects every layer.

        Returns:
            Tuple of (layer infos, descriptors) for the selected layers.
        """
        all_descs = get_image_layer_descriptors(self._content_store, image.target)
        return filter_layer_descriptors(all_descs, layers, platforms)

    def create_layer_filter(
        self,
        image: ImageRecord,
        *,
        platforms: Sequence[Platform] = (),
        layers: Sequence[int] = (),
    ) -> LayerFilter:
        """Build a predicate selecting the requested layers of an image by digest."""
        _, descs = self.get_image_layer_infos(image, platforms=platforms, layers=layers)
        return create_layer_filter(descs)

    def encrypt_image(
        self,
        image: ImageRecord,
        new_name: str | None,
        config: CryptoConfig,
        *,
        platforms: Sequence[Platform] = (),
        layers: Sequence[int] = (),
    ) -> ImageRecord:
        """
        Encrypt the selected layers of an image.

        Args:
            image: Image to encrypt.
            new_name: Name of the resulting image. None updates the image in place.
            config: Combined crypto config with an encrypt side.
            platforms: Requested platforms. Empty selects every platform.
            layers: Signed layer selectors. Empty selects every layer.

        Returns:
            The new image record, or the original one if nothing changed.

        Raises:
            LeaseError: If no lease can be acquired.
        """
        return self._crypt_image(
            image,
            new_name,
            config,
            self._backend.encrypt_image,
            platforms=platforms,
            layers=layers,
            operation="encrypt",
        )

    def decrypt_image(
        self,
        image: ImageRecord,
        new_name: str | None,
        config: CryptoConfig,
        *,
        platforms: Sequence[Platform] = (),
        layers: Sequence[int] = (),
    ) -> ImageRecord:
        """
        Decrypt the selected layers of an image.

        Args:
            image: Image to decrypt.
            new_name: Name of the resulting image. None updates the image in place.
            config: Combined crypto config with a decrypt side.
            platforms: Requested platforms. Empty selects every platform.
            layers: Signed layer selectors. Empty selects every layer.

        Returns:
            The new image record, or the original one if nothing changed.

        Raises:
            LeaseError: If no lease can be acquired.
        """
        return self._crypt_image(
            image,
            new_name,
            config,
            self._backend.decrypt_image,
            platforms=platforms,
            layers=layers,
            operation="decrypt",
        )

    def _crypt_image(
        self,
        image: ImageRecord,
        new_name: str | None,
        config: CryptoConfig,
        transform: _Transform,
        *,
        platforms: Sequence[Platform],
        layers: Sequence[int],
        operation: str,
    ) -> ImageRecord:
        layer_filter = self.create_layer_filter(image, platforms=platforms, layers=layers)

        with self._leased() as lease_id:
            new_desc, modified = transform(
                self._content_store, image.target, config, layer_filter, lease_id=lease_id
            )
            if not modified:
                logger.info("Image unchanged", image=image.name, operation=operation)
                return image

            record = ImageRecord(
                name=new_name or image.name, target=new_desc, labels=dict(image.labels)
            )
            if new_name:
                result = self._image_store.create(record)
            else:
                result = self._image_store.update(record)

        logger.info(
            "Image layers transformed",
            image=image.name,
            new_image=result.name,
            digest=new_desc.digest,
            operation=operation,
        )
        return result

    @contextmanager
    def _leased(self) -> Iterator[str]:
        try:
            lease_id = self._leases.create()
        except Exception as e:
            msg = f"Could not acquire lease: {e}"
            raise LeaseError(msg) from e
        logger.debug("Acquired lease", lease_id=lease_id)
        try:
            yield lease_id
        except BaseException:
            # Keep the in-flight error; a failed release must not replace it
            try:
                self._leases.delete(lease_id)
            except Exception as e:
                logger.warning("Could not release lease", lease_id=lease_id, error=str(e))
            raise
        self._leases.delete(lease_id)
        logger.debug("Released lease", lease_id=lease_id)
