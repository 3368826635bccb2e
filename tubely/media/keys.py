from __future__ import annotations

import base64
import enum
import mimetypes
import secrets

TOKEN_BYTES = 32

# Some platforms map video/mp4 to .mp4v or nothing at all.
_PREFERRED_EXTENSIONS = {
    "video/mp4": "mp4",
}


def random_token(num_bytes: int = TOKEN_BYTES) -> str:
    """Return ``num_bytes`` of CSPRNG output as unpadded URL-safe base64."""
    raw = secrets.token_bytes(num_bytes)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def extension_for(media_type: str) -> str:
    preferred = _PREFERRED_EXTENSIONS.get(media_type)
    if preferred:
        return preferred
    guessed = mimetypes.guess_extension(media_type)
    if not guessed:
        raise ValueError(f"no file extension known for {media_type}")
    return guessed.lstrip(".")


def generate_key(prefix: str | enum.Enum, extension: str = "mp4") -> str:
    """Build an object key of the form ``{prefix}/{token}.{extension}``.

    The token carries 256 bits of randomness, so keys are not checked for
    collisions against the store.
    """
    if isinstance(prefix, enum.Enum):
        prefix = prefix.value
    ext = extension.lstrip(".")
    if not prefix or not ext:
        raise ValueError("prefix and extension are required")
    return f"{prefix}/{random_token()}.{ext}"


__all__ = ["TOKEN_BYTES", "random_token", "extension_for", "generate_key"]
