"""
Token derivation helpers.
Hashing, auth digest encoding, entropy scoring and token generation.
"""

from __future__ import annotations
import hashlib
import math
import secrets
import string
from collections import Counter
from dataclasses import dataclass

BASE91_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
    "0123456789!#$%&()*+,./:;<=>?@[]^_`{|}~\""
)
BASE62_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class TokenEntropy:
    has_enough_entropy: bool
    bits_entropy: float
    shannon_entropy: float


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def derive_hash(token: str) -> str:
    """Session hash id. Seed for nickname and avatar derivation."""
    return sha256(sha256(token))


def hex_to_base91(hex_str: str) -> str:
    """basE91-encode the bytes of a hex string."""
    data = bytes.fromhex(hex_str)
    out = []
    b = 0
    n = 0
    for byte in data:
        b |= byte << n
        n += 8
        if n > 13:
            v = b & 8191
            if v > 88:
                b >>= 13
                n -= 13
            else:
                v = b & 16383
                b >>= 14
                n -= 14
            out.append(BASE91_ALPHABET[v % 91])
            out.append(BASE91_ALPHABET[v // 91])
    if n:
        out.append(BASE91_ALPHABET[b % 91])
        if n > 7 or b > 90:
            out.append(BASE91_ALPHABET[b // 91])
    return "".join(out)


def auth_digest(token: str) -> str:
    """Value sent to coordinators in place of the raw token."""
    return hex_to_base91(sha256(token))


def validate_token_entropy(
    token: str,
    min_bits: float = 128.0,
    min_shannon: float = 4.0,
) -> TokenEntropy:
    """
    Score a token.
    bits_entropy = len(token) * log2(distinct characters)
    shannon_entropy = per-character Shannon entropy of the token
    """
    if not token:
        return TokenEntropy(False, 0.0, 0.0)

    counts = Counter(token)
    length = len(token)
    bits_entropy = length * math.log2(len(counts)) if len(counts) > 1 else 0.0
    shannon_entropy = -sum(
        (c / length) * math.log2(c / length) for c in counts.values()
    )
    # -0.0 for single-character tokens
    shannon_entropy = abs(shannon_entropy)
    return TokenEntropy(
        has_enough_entropy=bits_entropy > min_bits and shannon_entropy > min_shannon,
        bits_entropy=bits_entropy,
        shannon_entropy=shannon_entropy,
    )


def generate_token(length: int = 36) -> str:
    """Random base62 token."""
    return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))
