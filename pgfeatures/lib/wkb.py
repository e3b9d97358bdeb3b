# encoding: utf-8
"""Well-Known Binary writer for GeoJSON geometries.

Geometries are reduced to two dimensions and polygon rings are closed before
geomet writes the bytes: a byte order flag, a uint32 geometry type and a type
specific body. Multi geometries contain complete child encodings, each with
its own flag and type.
"""
import io
from typing import BinaryIO, Optional, Sequence

from geomet import wkb

from pgfeatures.exceptions import UnsupportedGeometryError
from pgfeatures.lib.constants import WKB_TYPE_CODES
from pgfeatures.types import ByteOrder, Geometry

BYTE_ORDERS = ("little", "big")

Coordinates = Sequence[float]
Ring = Sequence[Coordinates]


def close_ring(ring: Ring) -> list:
    """Return a copy of the ring whose last point equals its first.

    The input is never modified. An empty ring is returned empty.

    :param ring: Sequence of coordinate pairs
    """
    closed = list(ring)
    if not closed:
        return closed
    first, last = closed[0], closed[-1]
    if not (first[0] == last[0] and first[1] == last[1]):
        closed.append(first)
    return closed


def _position(coordinates: Coordinates) -> list:
    return [coordinates[0], coordinates[1]]


def _positions(points: Sequence[Coordinates]) -> list:
    return [_position(p) for p in points]


def _rings(rings: Sequence[Ring]) -> list:
    return [_positions(close_ring(ring)) for ring in rings]


def _lines(lines: Sequence[Sequence[Coordinates]]) -> list:
    return [_positions(line) for line in lines]


def _polygons(polygons: Sequence[Sequence[Ring]]) -> list:
    return [_rings(polygon) for polygon in polygons]


# coordinates of each writable type, flattened to x, y
_FLATTEN = {
    "Point": _position,
    "LineString": _positions,
    "Polygon": _rings,
    "MultiPoint": _positions,
    "MultiLineString": _lines,
    "MultiPolygon": _polygons,
}


class WKBEncoder:
    """Writes geometries as WKB to the stream given at creation time.

    :param stream: Binary stream to write to
    :param byte_order: ``little`` or ``big`` (Default value = 'little')
    """

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = "little"):
        if byte_order not in BYTE_ORDERS:
            raise ValueError(f"Unknown byte order {byte_order!r}")
        self.stream = stream
        self.byte_order = byte_order
        self.big_endian = byte_order == "big"

    def encode(self, geometry: Geometry) -> None:
        """Write one geometry, including its byte order flag and type code.

        :param geometry: GeoJSON geometry mapping with ``type`` and ``coordinates``
        """
        geom_type = geometry.get("type")
        if geom_type not in WKB_TYPE_CODES:
            raise UnsupportedGeometryError(f"unsupported type: {geom_type!r}")
        flat = {
            "type": geom_type,
            "coordinates": _FLATTEN[geom_type](geometry["coordinates"]),
        }
        self.stream.write(wkb.dumps(flat, big_endian=self.big_endian))


def dumps(geometry: Optional[Geometry], byte_order: ByteOrder = "little") -> bytes:
    """Encode a geometry as WKB.

    :param geometry: GeoJSON geometry mapping, or None
    :param byte_order: ``little`` or ``big`` (Default value = 'little')
    :returns: The encoded bytes, empty for a None geometry
    """
    buffer = io.BytesIO()
    if geometry is not None:
        WKBEncoder(buffer, byte_order).encode(geometry)
    return buffer.getvalue()
