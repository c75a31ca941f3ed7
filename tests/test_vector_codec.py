from __future__ import annotations

import struct

import pytest

from docassist.errors import FormatError
from docassist.storage.vector_codec import decode
from docassist.storage.vector_codec import encode
from docassist.storage.vector_codec import normalize_embedding


def test_encode_layout_is_big_endian_header_then_floats() -> None:
    data = encode([1.0, -2.5])
    assert data == b"\x00\x02" + struct.pack(">f", 1.0) + struct.pack(">f", -2.5)


def test_round_trip_preserves_float32_values() -> None:
    vector = [0.5, -0.25, 3.0, 1e-3]
    expected = [struct.unpack(">f", struct.pack(">f", v))[0] for v in vector]
    assert decode(encode(vector)) == expected


def test_round_trip_max_dimension() -> None:
    vector = [float(i % 7) for i in range(65535)]
    assert decode(encode(vector)) == vector


def test_empty_vector_encodes_to_absent_value() -> None:
    assert encode([]) is None
    assert decode(encode([])) == []


def test_encode_rejects_oversized_vector() -> None:
    with pytest.raises(FormatError):
        encode([0.0] * 65536)


def test_encode_rejects_non_finite_values() -> None:
    with pytest.raises(FormatError):
        encode([1.0, float("nan")])
    with pytest.raises(FormatError):
        encode([1e300])


def test_decode_rejects_short_header() -> None:
    with pytest.raises(FormatError):
        decode(b"\x00")
    with pytest.raises(FormatError):
        decode(b"")


def test_decode_rejects_truncated_body() -> None:
    data = encode([1.0, 2.0])
    assert data is not None
    with pytest.raises(FormatError):
        decode(data[:-1])


def test_decode_rejects_length_not_matching_header() -> None:
    data = encode([1.0, 2.0])
    assert data is not None
    with pytest.raises(FormatError):
        decode(data + struct.pack(">f", 3.0))


def test_normalize_embedding_rejects_empty() -> None:
    with pytest.raises(FormatError):
        normalize_embedding([])
