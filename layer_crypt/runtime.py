"""
Host runtime loading.

The content store, image store, leases and layer crypto backend come from the
host (for example a containerd client wrapper). A runtime is named by an
import path "package.module:factory"; the factory is called with the
LayerCryptConfig and returns an object with content_store, image_store,
leases and crypto attributes.
"""

import importlib

import structlog

from layer_crypt.config import LayerCryptConfig
from layer_crypt.crypto.protocol import Runtime
from layer_crypt.exceptions import RuntimeLoadError

logger = structlog.get_logger(__name__)

RUNTIME_ENV_VAR = "LAYER_CRYPT_RUNTIME"


def load_runtime(path: str | None, config: LayerCryptConfig) -> Runtime:
    """
    Import and build the host runtime.

    Args:
        path: "module:factory" import path.
        config: Settings passed to the factory.

    Returns:
        The runtime.

    Raises:
        RuntimeLoadError: If the path is missing or malformed, the factory
            cannot be imported or fails, or the result lacks a collaborator.
    """
    if not path:
        msg = f"No runtime configured; use --runtime or set {RUNTIME_ENV_VAR}"
        raise RuntimeLoadError(msg)

    module_name, sep, factory_name = path.partition(":")
    if not sep or not module_name or not factory_name:
        msg = "Runtime must be given as module:factory"
        raise RuntimeLoadError(msg, runtime=path)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"Could not import runtime module: {e}"
        raise RuntimeLoadError(msg, runtime=path) from e

    factory = getattr(module, factory_name, None)
    if not callable(factory):
        msg = "Runtime factory not found"
        raise RuntimeLoadError(msg, runtime=path)

    try:
        runtime = factory(config)
    except Exception as e:
        msg = f"Runtime factory failed: {e}"
        raise RuntimeLoadError(msg, runtime=path) from e

    if not isinstance(runtime, Runtime):
        msg = "Runtime lacks content_store, image_store, leases or crypto"
        raise RuntimeLoadError(msg, runtime=path)

    logger.debug("Loaded runtime", runtime=path)
    return runtime
