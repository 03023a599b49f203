"""Embedding helpers: the offline hashed fallback and vector similarity."""

from __future__ import annotations

import re
from typing import List, Sequence

import numpy as np

FALLBACK_DIMENSION = 256

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193
_TOKEN = re.compile(r"[a-z0-9]+")


def fnv1a_32(value: str) -> int:
    """32-bit FNV-1a hash over the UTF-8 bytes of *value*."""

    digest = _FNV_OFFSET_BASIS
    for byte in value.encode("utf-8"):
        digest ^= byte
        digest = (digest * _FNV_PRIME) & 0xFFFFFFFF
    return digest


def tokenize(text: str) -> List[str]:
    return _TOKEN.findall(text.lower())


def hashed_embedding(text: str, dimension: int = FALLBACK_DIMENSION) -> List[float]:
    """Deterministic bag-of-tokens embedding used when no model is reachable.

    Each lowercase alphanumeric token increments the bucket chosen by its
    FNV-1a hash; the result is L2-normalised. Text without tokens yields the
    zero vector.
    """

    vector = np.zeros(dimension, dtype=np.float64)
    for token in tokenize(text):
        vector[fnv1a_32(token) % dimension] += 1.0
    norm = float(np.linalg.norm(vector)) or 1.0
    return (vector / norm).tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    if left.shape != right.shape:
        raise ValueError(
            f"Embedding dimensions differ ({left.shape[0]} vs {right.shape[0]})."
        )
    denominator = float(np.linalg.norm(left) * np.linalg.norm(right))
    if denominator == 0.0:
        return 0.0
    return float(left @ right) / denominator
