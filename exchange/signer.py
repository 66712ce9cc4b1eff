"""RSA-PSS request signer for the Kalshi trade API.

The canonical payload is `timestamp + method + path + body` with no
delimiters. It is hashed with SHA-256, signed with RSASSA-PSS (MGF1-SHA256,
salt length = digest length) and base64-encoded. PSS salts are random, so two
signatures of the same payload differ; verify them, never compare them.
"""

from __future__ import annotations

import base64
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from core.errors import KeyLoadError, SigningError


def pss_padding() -> padding.PSS:
    """The padding used both for signing and for verifying."""
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()),
        salt_length=padding.PSS.DIGEST_LENGTH,
    )


class RequestSigner:
    """Signs request payloads with an RSA private key loaded from a PEM file.

    Raises KeyLoadError on construction if the key cannot be used.
    """

    def __init__(self, private_key_path: str | Path, password: bytes | None = None) -> None:
        self._path = Path(private_key_path).expanduser()
        self._key = self._load_key(self._path, password)

    @staticmethod
    def _load_key(path: Path, password: bytes | None) -> rsa.RSAPrivateKey:
        try:
            pem = path.read_bytes()
        except OSError as exc:
            raise KeyLoadError(f"Cannot read private key file {path}: {exc}") from exc

        try:
            key = serialization.load_pem_private_key(pem, password=password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyLoadError(f"Malformed private key in {path}: {exc}") from exc

        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyLoadError(f"Private key in {path} is not an RSA key")
        return key

    @staticmethod
    def build_payload(timestamp: str, method: str, path: str, body: str = "") -> str:
        return f"{timestamp}{method.upper()}{path}{body}"

    def sign(self, payload: str) -> str:
        """Sign `payload` and return the base64 signature."""
        try:
            raw = self._key.sign(payload.encode("utf-8"), pss_padding(), hashes.SHA256())
        except Exception as exc:
            raise SigningError(f"Failed to sign payload: {exc}") from exc
        return base64.b64encode(raw).decode("ascii")

    def public_key(self) -> rsa.RSAPublicKey:
        return self._key.public_key()
