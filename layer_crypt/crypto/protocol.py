"""
Interfaces of the external collaborators.

Content storage, image naming, leases and the per-layer crypto transforms
are provided by the host runtime. These protocols describe what layer_crypt
calls into, so implementations can be swapped without changing the rest of
the codebase.
"""

from collections.abc import Callable
from typing import BinaryIO, Protocol, runtime_checkable

from layer_crypt.models.crypto import CryptoConfig, DecryptConfig
from layer_crypt.models.image import Descriptor, ImageRecord

LayerFilter = Callable[[Descriptor], bool]


@runtime_checkable
class ContentStore(Protocol):
    """Content-addressable blob store."""

    def read_blob(self, desc: Descriptor) -> bytes:
        """
        Read a whole blob.

        Args:
            desc: Descriptor of the blob.

        Returns:
            The blob content.
        """
        ...


@runtime_checkable
class ImageStore(Protocol):
    """Image metadata service mapping names to target descriptors."""

    def get(self, name: str) -> ImageRecord:
        """Get an image record by name."""
        ...

    def create(self, image: ImageRecord) -> ImageRecord:
        """Register a new image record."""
        ...

    def update(self, image: ImageRecord) -> ImageRecord:
        """Replace an existing image record."""
        ...


@runtime_checkable
class LeaseManager(Protocol):
    """Leases protect in-flight content from garbage collection."""

    def create(self) -> str:
        """
        Create a lease.

        Returns:
            The lease ID.
        """
        ...

    def delete(self, lease_id: str) -> None:
        """Release a lease."""
        ...


@runtime_checkable
class LayerDecryptor(Protocol):
    """Decrypts a single layer stream."""

    def decrypt_layer(
        self,
        config: DecryptConfig,
        reader: BinaryIO,
        desc: Descriptor,
        unwrap_only: bool,
    ) -> BinaryIO:
        """
        Decrypt an encrypted layer.

        Args:
            config: Keys able to unwrap the layer key.
            reader: Encrypted layer bytes.
            desc: Descriptor of the encrypted layer, carrying its wrapped keys.
            unwrap_only: Only check that the layer key can be unwrapped.

        Returns:
            A readable stream of the plaintext layer.
        """
        ...


@runtime_checkable
class ImageCryptoBackend(LayerDecryptor, Protocol):
    """Encrypts and decrypts the selected layers of an image."""

    def encrypt_image(
        self,
        store: ContentStore,
        desc: Descriptor,
        config: CryptoConfig,
        layer_filter: LayerFilter,
        *,
        lease_id: str,
    ) -> tuple[Descriptor, bool]:
        """
        Encrypt the layers selected by the filter.

        Args:
            store: Content store to read and write blobs.
            desc: Target descriptor of the image.
            config: Combined crypto config.
            layer_filter: Predicate selecting the layers to encrypt.
            lease_id: Lease covering the blobs written.

        Returns:
            Tuple of (new target descriptor, whether anything changed).
        """
        ...

    def decrypt_image(
        self,
        store: ContentStore,
        desc: Descriptor,
        config: CryptoConfig,
        layer_filter: LayerFilter,
        *,
        lease_id: str,
    ) -> tuple[Descriptor, bool]:
        """
        Decrypt the layers selected by the filter.

        Returns:
            Tuple of (new target descriptor, whether anything changed).
        """
        ...


@runtime_checkable
class GPGClient(Protocol):
    """Access to the local GnuPG keyrings."""

    def read_pubring_file(self) -> bytes:
        """Export the public keyring in binary form."""
        ...

    def get_secret_key_details(self, key_id: int) -> tuple[bytes, bool]:
        """
        Describe a secret key.

        Returns:
            Tuple of (human-readable key info, whether the key exists).
        """
        ...

    def get_gpg_private_key(self, key_id: int, passphrase: str) -> bytes:
        """Export a secret key in binary form."""
        ...


@runtime_checkable
class Runtime(Protocol):
    """Everything the commands need from the host."""

    content_store: ContentStore
    image_store: ImageStore
    leases: LeaseManager
    crypto: ImageCryptoBackend
