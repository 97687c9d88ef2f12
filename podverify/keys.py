# podverify/keys.py
"""
Service keypair.

The hosting service owns one RSA keypair for its whole lifetime. The public
half is embedded in every feed so an aggregator can encrypt a challenge;
the private half decrypts that challenge once the owner has logged in.
"""

import base64
import binascii
import logging
import os
import textwrap
from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import InvalidChallengeError, KeyGenerationError

logger = logging.getLogger(__name__)

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
PEM_LINE_WIDTH = 64
PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def pem_to_base64(pem: str | bytes) -> str:
    """
    Remove the header and footer from a PEM-encoded key, as well as any line breaks.

    The result is safe to embed as an XML attribute value.
    """
    if isinstance(pem, bytes):
        pem = pem.decode("ascii")
    return "".join(
        line.strip()
        for line in pem.splitlines()
        if line.strip() and not line.startswith("-----")
    )


def base64_to_pem(encoded: str) -> bytes:
    """Re-frame a stripped public key as a standard PEM block."""
    body = "\n".join(textwrap.wrap(encoded, PEM_LINE_WIDTH))
    return f"{PEM_HEADER}\n{body}\n{PEM_FOOTER}\n".encode("ascii")


def encrypt_challenge(public_key_encoded: str, plaintext: str) -> str:
    """
    Encrypt a challenge for a feed's published key.

    This is what an aggregator does with the ``publicKey`` attribute it
    found in the feed. Returns the base64 token to pass as ``challengeToken``.
    """
    public_key = serialization.load_pem_public_key(base64_to_pem(public_key_encoded))
    ciphertext = public_key.encrypt(plaintext.encode("utf-8"), _oaep())
    return base64.b64encode(ciphertext).decode("ascii")


@dataclass(frozen=True)
class KeyPair:
    """
    RSA keypair held for the process lifetime.

    Attributes:
        private: The private key (never leaves the process)
        public: The matching public key
    """
    private: rsa.RSAPrivateKey
    public: rsa.RSAPublicKey

    @classmethod
    def generate(cls, key_size: int = KEY_SIZE) -> "KeyPair":
        """Generate a fresh keypair. Raises KeyGenerationError on failure."""
        try:
            private_key = rsa.generate_private_key(
                public_exponent=PUBLIC_EXPONENT,
                key_size=key_size,
            )
        except (ValueError, TypeError) as e:
            raise KeyGenerationError(f"failed to generate a key: {e}") from e
        logger.info(f"Generated {key_size}-bit RSA keypair")
        return cls(private=private_key, public=private_key.public_key())

    @classmethod
    def load(cls, path: Path | str) -> "KeyPair":
        """Load a PEM private key from disk. Raises KeyGenerationError on failure."""
        path = Path(path)
        try:
            private_key = serialization.load_pem_private_key(
                path.read_bytes(),
                password=None,
            )
        except (OSError, ValueError, TypeError) as e:
            raise KeyGenerationError(f"failed to load key from {path}: {e}") from e
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyGenerationError(f"{path} does not hold an RSA private key")
        logger.info(f"Loaded RSA keypair from {path}")
        return cls(private=private_key, public=private_key.public_key())

    def save(self, path: Path | str) -> Path:
        """Write the private key as unencrypted PKCS#8 PEM, owner-only."""
        path = Path(path)
        pem = self.private.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(pem)
        os.chmod(path, 0o600)
        return path

    def public_key_pem(self) -> bytes:
        return self.public.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def public_key_encoded(self) -> str:
        """Public key without PEM framing or line breaks."""
        return pem_to_base64(self.public_key_pem())

    def decrypt_challenge(self, token: str) -> str:
        """
        Decrypt a challenge token produced by encrypt_challenge().

        Raises:
            InvalidChallengeError: token is not base64, was not encrypted for
                this key, or is not UTF-8 once decrypted
        """
        try:
            ciphertext = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidChallengeError("challenge token is not valid base64") from e

        try:
            plaintext = self.private.decrypt(ciphertext, _oaep())
        except ValueError as e:
            raise InvalidChallengeError("challenge token could not be decrypted") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidChallengeError("challenge token is not UTF-8") from e
