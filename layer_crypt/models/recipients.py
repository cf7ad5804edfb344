"""
Classified recipient and private key inputs.
"""

from dataclasses import dataclass, field

from layer_crypt.models.crypto import KeyMaterial


@dataclass(frozen=True, kw_only=True)
class RecipientKeys:
    """
    Recipients sorted by scheme.

    Attributes:
        gpg_recipients: PGP identities (email or name).
        public_keys: Public key file contents, for JWE.
        certificates: X.509 certificate file contents, for PKCS7.
    """

    gpg_recipients: tuple[bytes, ...] = ()
    public_keys: tuple[bytes, ...] = field(default=(), repr=False)
    certificates: tuple[bytes, ...] = field(default=(), repr=False)


@dataclass(frozen=True, kw_only=True)
class PrivateKeys:
    """
    Private key files sorted by type, each with its resolved password.

    Attributes:
        private_keys: PEM/DER private keys.
        gpg_secret_key_rings: GPG secret keyrings.
    """

    private_keys: tuple[KeyMaterial, ...] = ()
    gpg_secret_key_rings: tuple[KeyMaterial, ...] = ()
