"""
Session signing keys.

The RSA key pair is loaded once during application startup and kept on
``app.state``; request handlers receive it through ``get_session_keys``.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import Request

from flowdash.core.config import Settings
from flowdash.core.logging_config import get_logger

logger = get_logger("keys")


class KeyLoadError(RuntimeError):
    pass


@dataclass(frozen=True)
class SessionKeys:
    private_key: str
    public_key: str
    algorithm: str = "RS256"


def format_pem_key(key: str, kind: str) -> str:
    """
    Rebuild a PEM block from text whose line breaks were lost (e.g. a key
    pasted into a single-line environment variable).

    ``kind`` is "PUBLIC" or "PRIVATE".
    """
    if "-----BEGIN" in key and "\n" in key.strip():
        return key
    header = f"-----BEGIN {kind} KEY-----"
    footer = f"-----END {kind} KEY-----"
    body = key.replace(header, "").replace(footer, "")
    body = re.sub(r"[^A-Za-z0-9+/=]", "", body)
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return "\n".join([header, *lines, footer]) + "\n"


def _read_key(env_value: Optional[str], path: str, kind: str, settings: Settings) -> str:
    if env_value:
        return format_pem_key(env_value, kind)
    key_path = Path(settings.resolve_path(path))
    try:
        return key_path.read_text(encoding="utf-8")
    except OSError as e:
        raise KeyLoadError(
            f"Could not load {kind.lower()} key from JWT_{kind}_KEY or {key_path}: {e}"
        ) from e


def _check_key_pair(private_pem: str, public_pem: str) -> None:
    """Parse both keys and make sure they are one RSA pair."""
    try:
        private_key = serialization.load_pem_private_key(private_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyLoadError(f"JWT private key is not a valid unencrypted PEM key: {e}") from e
    try:
        public_key = serialization.load_pem_public_key(public_pem.encode("utf-8"))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyLoadError(f"JWT public key is not a valid PEM key: {e}") from e

    if not isinstance(private_key, rsa.RSAPrivateKey) or not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyLoadError("JWT keys must be RSA keys for RS256 signing")
    if private_key.public_key().public_numbers() != public_key.public_numbers():
        raise KeyLoadError("JWT public key does not match the private key")


def load_session_keys(settings: Settings) -> SessionKeys:
    """Load and validate the signing/verification key pair. Called once at startup."""
    private_key = _read_key(settings.JWT_PRIVATE_KEY, settings.JWT_PRIVATE_KEY_PATH, "PRIVATE", settings)
    public_key = _read_key(settings.JWT_PUBLIC_KEY, settings.JWT_PUBLIC_KEY_PATH, "PUBLIC", settings)
    _check_key_pair(private_key, public_key)
    logger.info("Session keys loaded (algorithm=%s)", settings.JWT_ALGORITHM)
    return SessionKeys(private_key=private_key, public_key=public_key, algorithm=settings.JWT_ALGORITHM)


def get_session_keys(request: Request) -> SessionKeys:
    keys = getattr(request.app.state, "session_keys", None)
    if keys is None:
        # Startup did not run or failed; nothing can be signed or verified
        raise KeyLoadError("Session keys are not loaded")
    return keys
