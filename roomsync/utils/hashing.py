"""Stable string hashing used to spread rooms across release batches."""


def hash_string(value: str) -> int:
    """
    Java-style 32-bit string hash, folded to a non-negative int.

    Python's built-in hash() is salted per process, so it cannot be used for
    anything that must agree between restarts.
    """
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return abs(h)
