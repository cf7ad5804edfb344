"""
Side-channel payload protocol.

A ProcessorPayload carries everything an external layer tool needs to decrypt
one layer: the layer descriptor and the decrypt config. It crosses the process
boundary as a protobuf Any whose type_url names the payload type and whose
value is the JSON-encoded payload.

The receiver reads the payload from a dedicated file descriptor, the encrypted
layer from stdin, and writes the plaintext layer to stdout.

Type registration is explicit: build a TypeRegistry, call
register_layer_tool_types once, then pass the registry around.
"""

import json
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, Self

import structlog
from google.protobuf import any_pb2
from google.protobuf.message import DecodeError

from layer_crypt.crypto.protocol import LayerDecryptor
from layer_crypt.exceptions import BackendError, PayloadTypeError, TransportError
from layer_crypt.models.crypto import DecryptConfig
from layer_crypt.models.image import Descriptor

logger = structlog.get_logger(__name__)

PROCESSOR_PAYLOAD_TYPE_URL = "com.ibm.research.v1.ProcessorPayload"
LAYER_TOOL_PROCESSORS = ("io.containerd.layertool.tar", "io.containerd.layertool.tar.gzip")

_DEFAULT_CHUNK_SIZE = 10 * 1024


class Serializable(Protocol):
    def to_dict(self) -> dict[str, Any]: ...

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self: ...


@dataclass(frozen=True, kw_only=True)
class ProcessorPayload:
    """Decryption parameters for a single layer."""

    descriptor: Descriptor
    decrypt_config: DecryptConfig

    def to_dict(self) -> dict[str, Any]:
        return {
            "decrypt_config": self.decrypt_config.to_dict(),
            "descriptor": self.descriptor.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            descriptor=Descriptor.from_dict(data["descriptor"]),
            decrypt_config=DecryptConfig.from_dict(data.get("decrypt_config") or {}),
        )


class TypeRegistry:
    """
    Maps type URLs to payload types for Any envelopes.

    Example:
        registry = register_layer_tool_types(TypeRegistry())
        data = marshal_payload(registry, payload)
    """

    def __init__(self) -> None:
        self._types: dict[str, type[Serializable]] = {}
        self._urls: dict[type[Serializable], str] = {}

    def register(self, cls: type[Serializable], type_url: str) -> None:
        """
        Register a type under a URL.

        Raises:
            ValueError: If the URL or the type is already registered differently.
        """
        if self._types.get(type_url, cls) is not cls or self._urls.get(cls, type_url) != type_url:
            msg = f"Conflicting registration for {type_url}"
            raise ValueError(msg)
        self._types[type_url] = cls
        self._urls[cls] = type_url

    def type_url_for(self, value: Serializable) -> str:
        try:
            return self._urls[type(value)]
        except KeyError:
            msg = f"Type {type(value).__name__} is not registered"
            raise ValueError(msg) from None

    def marshal_any(self, value: Serializable) -> any_pb2.Any:
        """Wrap a registered value into an Any envelope."""
        return any_pb2.Any(
            type_url=self.type_url_for(value),
            value=json.dumps(value.to_dict(), separators=(",", ":")).encode("utf-8"),
        )

    def unmarshal_any(self, envelope: any_pb2.Any) -> Serializable:
        """
        Unwrap an Any envelope.

        Raises:
            PayloadTypeError: If the type URL is not registered.
            TransportError: If the value cannot be decoded.
        """
        cls = self._types.get(envelope.type_url)
        if cls is None:
            msg = f"Received an unknown data type '{envelope.type_url}'"
            raise PayloadTypeError(msg, type_url=envelope.type_url)
        try:
            return cls.from_dict(json.loads(envelope.value))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            msg = f"Could not decode {envelope.type_url} payload: {e}"
            raise TransportError(msg) from e


def register_layer_tool_types(registry: TypeRegistry) -> TypeRegistry:
    """Register the payload types exchanged with layer tools."""
    registry.register(ProcessorPayload, PROCESSOR_PAYLOAD_TYPE_URL)
    return registry


def marshal_payload(registry: TypeRegistry, payload: ProcessorPayload) -> bytes:
    """Serialize a payload to its wire form."""
    return registry.marshal_any(payload).SerializeToString()


def unmarshal_layer_tool_decrypt_data(registry: TypeRegistry, decrypt_data: bytes) -> ProcessorPayload:
    """
    Deserialize a payload from its wire form.

    Raises:
        TransportError: If the data is not a valid Any envelope.
        PayloadTypeError: If the envelope holds something other than a ProcessorPayload.
    """
    envelope = any_pb2.Any()
    try:
        envelope.ParseFromString(decrypt_data)
    except DecodeError as e:
        msg = f"Could not unmarshal decrypt data: {e}"
        raise TransportError(msg) from e

    value = registry.unmarshal_any(envelope)
    if not isinstance(value, ProcessorPayload):
        msg = f"Received an unknown data type '{envelope.type_url}'"
        raise PayloadTypeError(msg, type_url=envelope.type_url)
    return value


def processor_payloads_for(
    registry: TypeRegistry, descriptor: Descriptor, decrypt_config: DecryptConfig
) -> dict[str, any_pb2.Any]:
    """
    Build the per-processor payloads for unpacking an encrypted layer.

    Returns:
        The same envelope keyed by each layer tool processor name.
    """
    envelope = registry.marshal_any(
        ProcessorPayload(descriptor=descriptor, decrypt_config=decrypt_config)
    )
    return dict.fromkeys(LAYER_TOOL_PROCESSORS, envelope)


def read_decrypt_data(fd: int) -> bytes:
    """
    Read the whole payload from a file descriptor, closing it afterwards.

    Raises:
        TransportError: If the descriptor is invalid or unreadable.
    """
    try:
        with os.fdopen(fd, "rb") as config_file:
            return config_file.read()
    except (OSError, ValueError) as e:
        msg = f"Config data file descriptor {fd} is invalid: {e}"
        raise TransportError(msg, fd=fd) from e


def copy_stream(reader: BinaryIO, writer: BinaryIO, chunk_size: int = _DEFAULT_CHUNK_SIZE) -> int:
    """
    Copy reader to writer in fixed-size chunks until end of stream.

    Returns:
        Number of bytes copied.

    Raises:
        TransportError: If reading or writing fails.
    """
    copied = 0
    try:
        while chunk := reader.read(chunk_size):
            writer.write(chunk)
            copied += len(chunk)
        writer.flush()
    except OSError as e:
        msg = f"Could not copy data: {e}"
        raise TransportError(msg, copied=copied) from e
    return copied


def stream_decrypted_layer(
    registry: TypeRegistry,
    decryptor: LayerDecryptor,
    *,
    config_fd: int = 3,
    layer_in: BinaryIO | None = None,
    layer_out: BinaryIO | None = None,
    chunk_size: int = _DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Decrypt one layer for an external unpacker.

    Reads the payload from config_fd, the encrypted layer from layer_in
    (stdin by default) and writes the plaintext layer to layer_out
    (stdout by default).

    Returns:
        Number of plaintext bytes written.

    Raises:
        TransportError: If a transport fails or the payload is malformed.
        PayloadTypeError: If the payload has an unexpected type.
        BackendError: If the layer cannot be decrypted.
    """
    decrypt_data = read_decrypt_data(config_fd)
    payload = unmarshal_layer_tool_decrypt_data(registry, decrypt_data)

    layer_in = layer_in if layer_in is not None else sys.stdin.buffer
    layer_out = layer_out if layer_out is not None else sys.stdout.buffer

    try:
        plain_layer = decryptor.decrypt_layer(
            payload.decrypt_config, layer_in, payload.descriptor, False
        )
    except Exception as e:
        msg = f"Call to decrypt_layer failed: {e}"
        raise BackendError(msg, digest=payload.descriptor.digest) from e

    copied = copy_stream(plain_layer, layer_out, chunk_size)
    logger.debug("Streamed decrypted layer", digest=payload.descriptor.digest, size=copied)
    return copied
