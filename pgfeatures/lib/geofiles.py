# encoding: utf-8
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Sequence, Union

import geojson

from pgfeatures.exceptions import ValidationError
from pgfeatures.lib.constants import MIN_RING_SIZE, POLYGONAL_TYPES
from pgfeatures.lib.wkb import close_ring
from pgfeatures.types import Geometry, PropertyValue

logger = logging.getLogger(__name__)


def validate_polygon_geom(geometry: Geometry) -> None:
    """Check every ring of a Polygon or MultiPolygon.

    Rings are measured after closure, so an open triangle of three points is
    accepted. Other geometry types are not checked.

    :param geometry: GeoJSON geometry mapping
    :raises ValidationError: if a polygon has no rings or a ring is too short
    """
    geom_type = geometry.get("type")
    if geom_type not in POLYGONAL_TYPES:
        return

    coords = geometry.get("coordinates") or []
    polygons = [coords] if geom_type == "Polygon" else coords
    if not polygons:
        raise ValidationError(f"{geom_type} geometry invalid: no polygons")

    for polygon in polygons:
        if not polygon:
            raise ValidationError(f"{geom_type} geometry invalid: polygon without rings")
        for ring in polygon:
            size = len(close_ring(ring))
            if size < MIN_RING_SIZE:
                raise ValidationError(
                    f"{geom_type} geometry invalid: ring of {size} points, "
                    f"at least {MIN_RING_SIZE} required"
                )


def _tag_text(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def format_tag_map(properties: Mapping[str, PropertyValue], tags: Sequence[str]) -> str:
    """Build the hstore literal for one row.

    ``format_tag_map({"a": "1", "b": "2"}, ["a", "b"])`` gives
    ``"a" => "1", "b" => "2"``. Missing or None properties become NULL values.

    :param properties: Feature properties
    :param tags: Property names, in declared order
    """
    pairs = []
    for tag in tags:
        value = properties.get(tag)
        rendered = "NULL" if value is None else _tag_text(value)
        pairs.append(f"{_tag_text(tag)} => {rendered}")
    return ", ".join(pairs)


def load_features(path: Union[str, Path]) -> Iterator[geojson.Feature]:
    """Iterate over the features of a GeoJSON file.

    A FeatureCollection yields its features, a single Feature yields itself
    and a bare geometry is wrapped in a Feature without properties.
    """
    with open(path) as f:
        logger.info(f"Loading geojson from {path}.")
        data = geojson.load(f)

    data_type = data.get("type")
    if data_type == "FeatureCollection":
        yield from data["features"]
    elif data_type == "Feature":
        yield data
    else:
        yield geojson.Feature(geometry=data, properties={})


def source_fields(features: Iterable[Mapping[str, Any]]) -> list[str]:
    """Find the full set of property keys, in order of first appearance."""
    fields: dict[str, None] = {}
    for feature in features:
        for key in (feature.get("properties") or {}).keys():
            fields.setdefault(key, None)
    return list(fields)


def write_feature_collection(
    features: Iterable[geojson.Feature], path: Union[str, Path]
) -> int:
    """Write features to a GeoJSON FeatureCollection file.

    :returns: The number of features written
    """
    collection = geojson.FeatureCollection(list(features))
    with open(path, "w") as f:
        geojson.dump(collection, f)
    logger.info(f"Output geojson file created {path}.")
    return len(collection["features"])
