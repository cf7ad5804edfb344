"""
Layer crypt exception hierarchy.

All exceptions inherit from LayerCryptError for easy catching.
"""

from typing import Any


class LayerCryptError(Exception):
    """Base exception for all layer_crypt errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class SpecifierFormatError(LayerCryptError):
    """A recipient, key or password specifier is malformed."""


class KeyContentError(LayerCryptError):
    """A file does not hold the expected key, certificate or keyring."""

    def __init__(self, message: str, *, path: str | None = None, **context: Any) -> None:
        super().__init__(message, path=path, **context)
        self.path = path


class UnidentifiedKeyError(KeyContentError):
    """A private key file is neither a private key nor a GPG secret keyring."""


class PasswordError(LayerCryptError):
    """A private key password is wrong or missing."""


class PlatformParseError(LayerCryptError):
    """A platform specifier cannot be parsed."""

    def __init__(self, message: str, *, specifier: str) -> None:
        super().__init__(message, specifier=specifier)
        self.specifier = specifier


class TransportError(LayerCryptError):
    """A side-channel or data-plane transport failed."""


class PayloadTypeError(TransportError):
    """A side-channel payload carries an unexpected type tag."""

    def __init__(self, message: str, *, type_url: str) -> None:
        super().__init__(message, type_url=type_url)
        self.type_url = type_url


class BackendError(LayerCryptError):
    """The external layer crypto backend failed."""


class LeaseError(LayerCryptError):
    """A content lease could not be acquired."""


class GPGError(LayerCryptError):
    """The gpg binary or one of its keyrings could not be used."""


class MissingKeyError(LayerCryptError):
    """No private key is available to decrypt an encrypted layer."""

    def __init__(self, message: str, *, digest: str, key_ids: tuple[str, ...]) -> None:
        super().__init__(message, digest=digest, key_ids=key_ids)
        self.digest = digest
        self.key_ids = key_ids


class UnsupportedMediaTypeError(LayerCryptError):
    """An image references a blob with a media type that cannot be walked."""

    def __init__(self, message: str, *, media_type: str) -> None:
        super().__init__(message, media_type=media_type)
        self.media_type = media_type


class RuntimeLoadError(LayerCryptError):
    """The host runtime providing stores and crypto backends cannot be loaded."""
