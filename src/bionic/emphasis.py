from __future__ import annotations

DEFAULT_MAX_FULL_LENGTH = 3


def split_point(length: int, *, max_full_length: int = DEFAULT_MAX_FULL_LENGTH) -> int:
    """
    Return how many leading characters of a word of ``length`` get emphasis.

    Short words are emphasized whole; longer ones up to ``ceil(log2(length))``.
    """
    if length < 0:
        raise ValueError(f"Word length must be non-negative, got {length}")
    if length <= max_full_length:
        return length
    # (n - 1).bit_length() == ceil(log2(n)) for n >= 1, without float rounding.
    return (length - 1).bit_length()


def emphasize(word: str, *, max_full_length: int = DEFAULT_MAX_FULL_LENGTH) -> tuple[str, str]:
    point = split_point(len(word), max_full_length=max_full_length)
    return word[:point], word[point:]


__all__ = ["DEFAULT_MAX_FULL_LENGTH", "emphasize", "split_point"]
