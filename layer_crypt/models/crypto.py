"""
Cryptographic configuration models.

A configuration is a set of backend variants, one per scheme. Each variant
knows how to union itself with another instance of the same scheme, which
is all the composer needs.
"""

import base64
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, Self, TypeVar

T = TypeVar("T")

PGP_ANNOTATION = "org.opencontainers.image.enc.keys.pgp"


class Scheme(StrEnum):
    """Key management schemes that can wrap a layer key."""

    PGP = "pgp"
    JWE = "jwe"
    PKCS7 = "pkcs7"


def union_ordered(left: Iterable[T], right: Iterable[T]) -> tuple[T, ...]:
    """Union preserving first-seen order and dropping duplicates."""
    return tuple(dict.fromkeys((*left, *right)))


@dataclass(frozen=True, kw_only=True)
class KeyMaterial:
    """
    A private key or keyring blob with its optional password.

    Attributes:
        data: Raw key bytes (PEM, DER or OpenPGP).
        password: Password protecting the key, if any.
    """

    data: bytes = field(repr=False)
    password: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True, kw_only=True)
class PgpEncryptBackend:
    """Encrypt to PGP recipients found in a public keyring."""

    scheme: ClassVar[Scheme] = Scheme.PGP

    recipients: tuple[bytes, ...] = ()
    pubrings: tuple[bytes, ...] = field(default=(), repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.recipients

    def union(self, other: Self) -> Self:
        return type(self)(
            recipients=union_ordered(self.recipients, other.recipients),
            pubrings=union_ordered(self.pubrings, other.pubrings),
        )


@dataclass(frozen=True, kw_only=True)
class JweEncryptBackend:
    """Wrap the layer key in a JWE envelope for each public key."""

    scheme: ClassVar[Scheme] = Scheme.JWE

    public_keys: tuple[bytes, ...] = field(default=(), repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.public_keys

    def union(self, other: Self) -> Self:
        return type(self)(public_keys=union_ordered(self.public_keys, other.public_keys))


@dataclass(frozen=True, kw_only=True)
class Pkcs7EncryptBackend:
    """Wrap the layer key in a PKCS7 envelope for each X.509 certificate."""

    scheme: ClassVar[Scheme] = Scheme.PKCS7

    certificates: tuple[bytes, ...] = field(default=(), repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.certificates

    def union(self, other: Self) -> Self:
        return type(self)(certificates=union_ordered(self.certificates, other.certificates))


class _KeyMaterialParameters:
    material_key: ClassVar[str]
    password_key: ClassVar[str]

    private_keys: tuple[KeyMaterial, ...]

    def to_parameters(self) -> dict[str, list[bytes | None]]:
        return {
            self.material_key: [k.data for k in self.private_keys],
            self.password_key: [k.password for k in self.private_keys],
        }

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Sequence[bytes | None]]) -> Self:
        keys = parameters.get(cls.material_key) or ()
        passwords = list(parameters.get(cls.password_key) or ())
        passwords += [None] * (len(keys) - len(passwords))
        return cls(
            private_keys=union_ordered(
                (),
                (
                    KeyMaterial(data=key, password=password)
                    for key, password in zip(keys, passwords)
                    if key
                ),
            )
        )


@dataclass(frozen=True, kw_only=True)
class PgpDecryptBackend(_KeyMaterialParameters):
    """Decrypt with GPG secret keys."""

    scheme: ClassVar[Scheme] = Scheme.PGP
    material_key: ClassVar[str] = "gpg-privatekeys"
    password_key: ClassVar[str] = "gpg-privatekeys-passwords"

    private_keys: tuple[KeyMaterial, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.private_keys

    def union(self, other: Self) -> Self:
        return type(self)(private_keys=union_ordered(self.private_keys, other.private_keys))


@dataclass(frozen=True, kw_only=True)
class JweDecryptBackend(_KeyMaterialParameters):
    """Decrypt with PEM/DER private keys. PKCS7 decryption uses these keys too."""

    scheme: ClassVar[Scheme] = Scheme.JWE
    material_key: ClassVar[str] = "privkeys"
    password_key: ClassVar[str] = "privkeys-passwords"

    private_keys: tuple[KeyMaterial, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.private_keys

    def union(self, other: Self) -> Self:
        return type(self)(private_keys=union_ordered(self.private_keys, other.private_keys))


@dataclass(frozen=True, kw_only=True)
class Pkcs7DecryptBackend:
    """Certificates identifying which PKCS7 recipient entry to unwrap."""

    scheme: ClassVar[Scheme] = Scheme.PKCS7
    material_key: ClassVar[str] = "x509s"

    certificates: tuple[bytes, ...] = field(default=(), repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.certificates

    def union(self, other: Self) -> Self:
        return type(self)(certificates=union_ordered(self.certificates, other.certificates))

    def to_parameters(self) -> dict[str, list[bytes | None]]:
        return {self.material_key: list(self.certificates)}

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Sequence[bytes | None]]) -> Self:
        certificates = parameters.get(cls.material_key) or ()
        return cls(certificates=union_ordered((), (c for c in certificates if c)))


EncryptBackend = PgpEncryptBackend | JweEncryptBackend | Pkcs7EncryptBackend
DecryptBackend = PgpDecryptBackend | JweDecryptBackend | Pkcs7DecryptBackend

_DECRYPT_BACKENDS_BY_KEY: dict[str, type[DecryptBackend]] = {
    cls.material_key: cls for cls in (PgpDecryptBackend, JweDecryptBackend, Pkcs7DecryptBackend)
}


def union_backends(*groups: Iterable[T]) -> tuple[T, ...]:
    """
    Union backend groups by scheme, preserving the order schemes first appear.

    Backends of the same scheme are merged; empty backends are dropped.
    """
    merged: dict[Scheme, Any] = {}
    for group in groups:
        for backend in group:
            if backend.is_empty:
                continue
            current = merged.get(backend.scheme)
            merged[backend.scheme] = (
                backend.union(type(backend)()) if current is None else current.union(backend)
            )
    return tuple(merged.values())


@dataclass(frozen=True, kw_only=True)
class DecryptConfig:
    """Backends able to unwrap a layer key."""

    backends: tuple[DecryptBackend, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.backends

    def backend(self, scheme: Scheme) -> DecryptBackend | None:
        """Get the backend for a scheme, if configured."""
        return next((b for b in self.backends if b.scheme == scheme), None)

    def union(self, other: "DecryptConfig") -> "DecryptConfig":
        return DecryptConfig(backends=union_backends(self.backends, other.backends))

    def to_dict(self) -> dict[str, Any]:
        """Encode as {"Parameters": {name: [base64 | None, ...]}}."""
        parameters: dict[str, list[str | None]] = {}
        for backend in self.backends:
            for name, values in backend.to_parameters().items():
                parameters[name] = [
                    base64.b64encode(v).decode("ascii") if v is not None else None for v in values
                ]
        return {"Parameters": parameters}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        raw = data.get("Parameters") or {}
        parameters = {
            name: [base64.b64decode(v) if v is not None else None for v in values or ()]
            for name, values in raw.items()
        }
        backends = [
            _DECRYPT_BACKENDS_BY_KEY[name].from_parameters(parameters)
            for name in parameters
            if name in _DECRYPT_BACKENDS_BY_KEY
        ]
        return cls(backends=union_backends(backends))


@dataclass(frozen=True, kw_only=True)
class EncryptConfig:
    """
    Backends able to wrap a layer key, plus the decrypt config needed to
    unwrap an existing key when recipients are added to an encrypted layer.
    """

    backends: tuple[EncryptBackend, ...] = ()
    decrypt_config: DecryptConfig = field(default_factory=DecryptConfig)

    @property
    def is_empty(self) -> bool:
        return not self.backends

    def backend(self, scheme: Scheme) -> EncryptBackend | None:
        """Get the backend for a scheme, if configured."""
        return next((b for b in self.backends if b.scheme == scheme), None)

    def attach_decrypt_config(self, decrypt_config: DecryptConfig | None) -> "EncryptConfig":
        """Return a copy that can also unwrap keys with the given decrypt config."""
        if decrypt_config is None:
            return self
        return EncryptConfig(
            backends=self.backends,
            decrypt_config=self.decrypt_config.union(decrypt_config),
        )


@dataclass(frozen=True, kw_only=True)
class CryptoConfig:
    """
    Encrypt and decrypt sides of an image crypto operation.

    A side is None when none of the composed configs carried it.
    """

    encrypt_config: EncryptConfig | None = None
    decrypt_config: DecryptConfig | None = None

    @property
    def is_empty(self) -> bool:
        encrypt_empty = self.encrypt_config is None or self.encrypt_config.is_empty
        decrypt_empty = self.decrypt_config is None or self.decrypt_config.is_empty
        return encrypt_empty and decrypt_empty
