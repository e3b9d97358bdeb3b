POINT = 1
LINESTRING = 2
POLYGON = 3
MULTIPOINT = 4
MULTILINESTRING = 5
MULTIPOLYGON = 6
GEOMETRYCOLLECTION = 7

WKB_TYPE_CODES = {
    "Point": POINT,
    "LineString": LINESTRING,
    "Polygon": POLYGON,
    "MultiPoint": MULTIPOINT,
    "MultiLineString": MULTILINESTRING,
    "MultiPolygon": MULTIPOLYGON,
    # -- defined by the format, never written --
    # "GeometryCollection": GEOMETRYCOLLECTION,
}

POLYGONAL_TYPES = {"Polygon", "MultiPolygon"}

# smallest valid closed ring: a triangle plus its closing point
MIN_RING_SIZE = 4

DEFAULT_SRID = 4326
WEB_MERCATOR_SRID = 3857

DEFAULT_BATCH_SIZE = 1000

DEFAULT_GEOMETRY_COLUMN = "geom"

DEFAULT_SCHEMA = "public"
