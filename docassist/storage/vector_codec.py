"""
向量二进制编码。

格式：
- 2 字节 big-endian 无符号整数：维度
- 随后 `维度` 个 4 字节 big-endian IEEE-754 float32

空向量编码为 `None`（缺失值），而不是 `b""`：0 维 embedding 在语义上永远无效。
"""

from __future__ import annotations

import struct
from collections.abc import Sequence

import numpy as np

from docassist.errors import FormatError

_HEADER = struct.Struct(">H")
_FLOAT_DTYPE = np.dtype(">f4")
MAX_DIMENSION = 0xFFFF


def encode(vector: Sequence[float]) -> bytes | None:
    values = np.asarray(vector, dtype=np.float64)
    if values.ndim != 1:
        raise FormatError(f"vector must be one-dimensional, got shape {values.shape}")
    dim = values.shape[0]
    if dim == 0:
        return None
    if dim > MAX_DIMENSION:
        raise FormatError(f"vector dimension {dim} exceeds {MAX_DIMENSION}")
    if not np.all(np.isfinite(values)):
        raise FormatError("vector contains non-finite values")
    with np.errstate(over="ignore"):
        floats = values.astype(_FLOAT_DTYPE)
    if not np.all(np.isfinite(floats)):
        raise FormatError("vector values overflow float32")
    return _HEADER.pack(dim) + floats.tobytes()


def decode(data: bytes | None) -> list[float]:
    if data is None:
        return []
    if len(data) < _HEADER.size:
        raise FormatError(f"buffer too short for header: {len(data)} bytes")
    (dim,) = _HEADER.unpack_from(data, 0)
    body = len(data) - _HEADER.size
    if body != dim * _FLOAT_DTYPE.itemsize:
        raise FormatError(f"expected {dim * _FLOAT_DTYPE.itemsize} bytes for {dim} values, got {body}")
    values = np.frombuffer(data, dtype=_FLOAT_DTYPE, count=dim, offset=_HEADER.size)
    return values.astype(np.float64).tolist()


def normalize_embedding(vector: Sequence[float]) -> np.ndarray:
    """
    写库前的 round-trip 校验：`decode(encode(v))`，同时把值规整为 float32。

    失败抛 `FormatError`（包括空向量）。
    """
    encoded = encode(vector)
    if encoded is None:
        raise FormatError("embedding is empty")
    return np.asarray(decode(encoded), dtype=np.float32)
