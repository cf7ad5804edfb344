"""
Layer crypt configuration.
"""

from dataclasses import dataclass

_GPG_VERSIONS = ("v1", "v2")


@dataclass(frozen=True, kw_only=True)
class LayerCryptConfig:
    """
    Attributes:
        gpg_version: GnuPG major version to use ("v1" or "v2"). None tries gpg2, then gpg.
        gpg_homedir: GnuPG home directory. None uses gpg's default.
        config_fd: File descriptor the stream command reads its payload from.
        stream_chunk_size: Chunk size in bytes for copying decrypted layer data.
        password_fd_read_size: Maximum number of bytes read for an fd= password.
        runtime: Import path ("module:factory") of the host runtime.
    """

    gpg_version: str | None = None
    gpg_homedir: str | None = None
    config_fd: int = 3
    stream_chunk_size: int = 10 * 1024
    password_fd_read_size: int = 64
    runtime: str | None = None

    def __post_init__(self) -> None:
        if self.gpg_version is not None and self.gpg_version not in _GPG_VERSIONS:
            msg = f"gpg_version must be one of {', '.join(_GPG_VERSIONS)}"
            raise ValueError(msg)
        if self.config_fd < 0:
            msg = "config_fd must be non-negative"
            raise ValueError(msg)
        if self.stream_chunk_size <= 0:
            msg = "stream_chunk_size must be positive"
            raise ValueError(msg)
        if self.password_fd_read_size <= 0:
            msg = "password_fd_read_size must be positive"
            raise ValueError(msg)
