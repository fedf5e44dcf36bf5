import re
import xxhash

# Storage fingerprint for refresh tokens. The token itself is high-entropy,
# so this is a fast 64-bit hash and not a password hash: no salt, no stretching.

DIGEST_BITS = 64
_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{1,16}")


class DigestFormatError(ValueError):
    """Stored digest is not a hex-encoded 64-bit value (store corruption)."""


def _digest_int(secret: str) -> int:
    return xxhash.xxh64_intdigest(secret.encode("utf-8"))


def digest(secret: str) -> str:
    return f"{_digest_int(secret):016x}"


def parse_digest(stored_digest_hex: str) -> int:
    if not isinstance(stored_digest_hex, str) or not stored_digest_hex:
        raise DigestFormatError("Stored digest is empty")
    # Bare hex digits only: no sign, prefix, underscores or padding
    if not _HEX_DIGEST.fullmatch(stored_digest_hex):
        raise DigestFormatError(f"Stored digest is not a 64-bit hex value: {stored_digest_hex!r}")
    return int(stored_digest_hex, 16)


def matches(stored_digest_hex: str, candidate_secret: str) -> bool:
    return parse_digest(stored_digest_hex) == _digest_int(candidate_secret)
