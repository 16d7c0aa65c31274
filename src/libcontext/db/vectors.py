"""Embedding (de)serialization for the snippets.embedding column."""

from __future__ import annotations

import math
import struct

import sqlite_vec


def serialize(embedding: list[float]) -> bytes:
    """Pack *embedding* as a sqlite-vec float32 blob."""
    return sqlite_vec.serialize_float32(embedding)


def deserialize(blob: bytes | None) -> list[float] | None:
    """Unpack a float32 blob written by serialize(); None passes through."""
    if blob is None:
        return None
    count = len(blob) // 4
    return list(struct.unpack(f"{count}f", blob))


def validate_embedding(embedding: list[float], dimensions: int | None = None) -> None:
    """Raise ValueError if *embedding* is empty, non-finite, or the wrong length."""
    if not embedding:
        raise ValueError("embedding must contain at least one value")
    if dimensions is not None and len(embedding) != dimensions:
        raise ValueError(
            f"embedding has {len(embedding)} dimensions, expected {dimensions}"
        )
    if not all(math.isfinite(v) for v in embedding):
        raise ValueError("embedding contains non-finite values")

