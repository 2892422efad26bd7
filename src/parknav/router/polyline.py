# polyline.py
# Google "encoded polyline" codec (precision 1e5), as returned by the
# Directions API for overview and step geometries.

from typing import Iterable, List

from ..models import Coord

_PRECISION = 1e5


def _decode_value(encoded: str, index: int):
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline string.")
        byte = ord(encoded[index]) - 63
        # Valid characters are '?' (0) through '~' (63)
        if not 0 <= byte <= 0x3F:
            raise ValueError(f"Invalid polyline character {encoded[index]!r} at {index}.")
        index += 1
        result |= (byte & 0x1F) << shift
        shift += 5
        if byte < 0x20:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode_polyline(encoded: str) -> List[Coord]:
    """
    Decode an encoded polyline into coordinates.

    Raises:
        ValueError: If the string ends in the middle of a value or holds a
            character outside the polyline alphabet.
    """
    coords: List[Coord] = []
    index = lat = lon = 0
    while index < len(encoded):
        d_lat, index = _decode_value(encoded, index)
        d_lon, index = _decode_value(encoded, index)
        lat += d_lat
        lon += d_lon
        coords.append(Coord(lat / _PRECISION, lon / _PRECISION))
    return coords


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[Coord]) -> str:
    """Encode coordinates with the same precision decode_polyline expects."""
    out = []
    prev_lat = prev_lon = 0
    for p in points:
        lat = int(round(p.lat * _PRECISION))
        lon = int(round(p.lon * _PRECISION))
        out.append(_encode_value(lat - prev_lat))
        out.append(_encode_value(lon - prev_lon))
        prev_lat, prev_lon = lat, lon
    return "".join(out)
