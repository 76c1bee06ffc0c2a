"""Text hashing for textual features.

Text is lower-cased and split on whitespace, and every token is hashed with
Paul Hsieh's SuperFastHash into an unsigned 32-bit code.
"""
from __future__ import annotations

_MASK = 0xFFFFFFFF


def _get16bits(data: bytes, pos: int) -> int:
    return data[pos] | (data[pos + 1] << 8)


def _signed_char(b: int) -> int:
    return b - 256 if b >= 128 else b


def superfasthash(data: bytes) -> int:
    """
    Paul Hsieh's SuperFastHash of ``data``.

    Parameters
    ----------
    data : bytes
        Input bytes.

    Returns
    -------
    int
        Hash in ``[0, 2**32)``. Empty input hashes to 0.
    """
    length = len(data)
    if length == 0:
        return 0
    h = length
    rem = length & 3
    pos = 0
    for _ in range(length >> 2):
        h = (h + _get16bits(data, pos)) & _MASK
        tmp = ((_get16bits(data, pos + 2) << 11) ^ h) & _MASK
        h = ((h << 16) ^ tmp) & _MASK
        pos += 4
        h = (h + (h >> 11)) & _MASK

    if rem == 3:
        h = (h + _get16bits(data, pos)) & _MASK
        h ^= (h << 16) & _MASK
        h ^= (_signed_char(data[pos + 2]) << 18) & _MASK
        h = (h + (h >> 11)) & _MASK
    elif rem == 2:
        h = (h + _get16bits(data, pos)) & _MASK
        h ^= (h << 11) & _MASK
        h = (h + (h >> 17)) & _MASK
    elif rem == 1:
        h = (h + _signed_char(data[pos])) & _MASK
        h ^= (h << 10) & _MASK
        h = (h + (h >> 1)) & _MASK

    # avalanche
    h ^= (h << 3) & _MASK
    h = (h + (h >> 5)) & _MASK
    h ^= (h << 4) & _MASK
    h = (h + (h >> 17)) & _MASK
    h ^= (h << 25) & _MASK
    h = (h + (h >> 6)) & _MASK
    return h


def tokenize(text: str) -> list[str]:
    return text.lower().split()


def hash_text(text: str) -> frozenset[int]:
    """Return the set of token hashes of ``text`` (empty for blank text)."""
    return frozenset(superfasthash(tok.encode("utf-8")) for tok in tokenize(text))
