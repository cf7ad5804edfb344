"""
Command-line interface.

    layer-crypt [--debug] [--runtime MODULE:FACTORY] encrypt <image> [newName] ...
    layer-crypt [--debug] [--runtime MODULE:FACTORY] decrypt <image> [newName] ...
    layer-crypt [--debug] [--runtime MODULE:FACTORY] stream
"""

import argparse
import logging
import os
import sys

import structlog

from layer_crypt import platforms
from layer_crypt.config import LayerCryptConfig
from layer_crypt.crypto.config import attach_decrypt_config
from layer_crypt.crypto.gpg import create_gpg_client
from layer_crypt.exceptions import LayerCryptError, SpecifierFormatError
from layer_crypt.payload import TypeRegistry, register_layer_tool_types, stream_decrypted_layer
from layer_crypt.runtime import RUNTIME_ENV_VAR, load_runtime
from layer_crypt.services.crypt_options import (
    CryptOptions,
    create_decrypt_crypto_config,
    create_encrypt_crypto_config,
)
from layer_crypt.services.crypt_service import ImageCryptService

logger = structlog.get_logger(__name__)


def configure_logging(debug: bool) -> None:
    """Send log lines to stderr; stdout carries layer data for stream."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _options(args: argparse.Namespace) -> CryptOptions:
    return CryptOptions(
        recipients=tuple(getattr(args, "recipient", None) or ()),
        keys=tuple(args.key or ()),
        dec_recipients=tuple(args.dec_recipient or ()),
        layers=tuple(args.layer or ()),
        platforms=tuple(args.platform or ()),
    )


def _config(args: argparse.Namespace) -> LayerCryptConfig:
    return LayerCryptConfig(
        gpg_version=getattr(args, "gpg_version", None),
        gpg_homedir=getattr(args, "gpg_homedir", None),
        runtime=args.runtime,
    )


def cmd_encrypt(args: argparse.Namespace) -> int:
    options = _options(args)
    if not options.recipients:
        msg = "no recipients given -- nothing to do"
        raise SpecifierFormatError(msg)

    config = _config(args)
    platform_list = platforms.parse_all(options.platforms)
    runtime = load_runtime(config.runtime, config)
    service = ImageCryptService(
        runtime.content_store, runtime.image_store, runtime.leases, runtime.crypto
    )

    image = runtime.image_store.get(args.image)
    if args.new_name:
        print(f"Encrypting {args.image} to {args.new_name}")

    gpg_client = create_gpg_client(config.gpg_version, config.gpg_homedir)
    encrypt_config = create_encrypt_crypto_config(options.recipients, gpg_client)

    # Existing layer keys stay decryptable for the new recipients.
    _, descs = service.get_image_layer_infos(image, platforms=platform_list, layers=options.layers)
    decrypt_config = create_decrypt_crypto_config(
        options, descs, gpg_client, fd_read_size=config.password_fd_read_size
    )
    crypto_config = attach_decrypt_config(encrypt_config, decrypt_config)

    result = service.encrypt_image(
        image, args.new_name, crypto_config, platforms=platform_list, layers=options.layers
    )
    print(result.name)
    return 0


def cmd_decrypt(args: argparse.Namespace) -> int:
    options = _options(args)
    config = _config(args)
    platform_list = platforms.parse_all(options.platforms)
    runtime = load_runtime(config.runtime, config)
    service = ImageCryptService(
        runtime.content_store, runtime.image_store, runtime.leases, runtime.crypto
    )

    image = runtime.image_store.get(args.image)
    if args.new_name:
        print(f"Decrypting {args.image} to {args.new_name}")

    gpg_client = create_gpg_client(config.gpg_version, config.gpg_homedir)
    _, descs = service.get_image_layer_infos(image, platforms=platform_list, layers=options.layers)
    crypto_config = create_decrypt_crypto_config(
        options, descs, gpg_client, fd_read_size=config.password_fd_read_size
    )

    result = service.decrypt_image(
        image, args.new_name, crypto_config, platforms=platform_list, layers=options.layers
    )
    print(result.name)
    return 0


def cmd_stream(args: argparse.Namespace) -> int:
    config = _config(args)
    runtime = load_runtime(config.runtime, config)
    registry = register_layer_tool_types(TypeRegistry())
    stream_decrypted_layer(
        registry,
        runtime.crypto,
        config_fd=config.config_fd,
        chunk_size=config.stream_chunk_size,
    )
    return 0


def _add_decryption_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--key",
        action="append",
        help="Private key file for decryption, optionally with :file=, :pass=, :fd= password",
    )
    parser.add_argument(
        "--dec-recipient",
        dest="dec_recipient",
        action="append",
        help="Recipient needed for decryption, e.g. pkcs7:/path/to/cert.pem",
    )
    parser.add_argument("--gpg-homedir", dest="gpg_homedir", help="GnuPG home directory")
    parser.add_argument(
        "--gpg-version", dest="gpg_version", choices=["v1", "v2"], help="GnuPG version"
    )


def _add_selection_flags(parser: argparse.ArgumentParser, verb: str) -> None:
    parser.add_argument(
        "--layer",
        type=int,
        action="append",
        help=f"Layer to {verb}: an index from 0, or a negative number with -1 the topmost layer",
    )
    parser.add_argument(
        "--platform",
        action="append",
        help=f"Platform to {verb}, e.g. linux/amd64; all platforms by default",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("layer-crypt", description="Encrypt and decrypt image layers.")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--runtime",
        default=os.environ.get(RUNTIME_ENV_VAR),
        help=f"Host runtime as module:factory (default: ${RUNTIME_ENV_VAR})",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_enc = sub.add_parser("encrypt", help="Encrypt image layers")
    p_enc.add_argument("image")
    p_enc.add_argument("new_name", nargs="?")
    p_enc.add_argument(
        "--recipient",
        action="append",
        help="Recipient in the form pgp:<email>, jwe:<pubkey file> or pkcs7:<cert file>",
    )
    _add_selection_flags(p_enc, "encrypt")
    _add_decryption_flags(p_enc)
    p_enc.set_defaults(func=cmd_encrypt)

    p_dec = sub.add_parser("decrypt", help="Decrypt image layers")
    p_dec.add_argument("image")
    p_dec.add_argument("new_name", nargs="?")
    _add_selection_flags(p_dec, "decrypt")
    _add_decryption_flags(p_dec)
    p_dec.set_defaults(func=cmd_decrypt)

    p_stream = sub.add_parser(
        "stream", help="Decrypt a layer from stdin to stdout using the payload on fd 3"
    )
    p_stream.set_defaults(func=cmd_stream)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)
    try:
        return args.func(args)
    except LayerCryptError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
