import logging

import click

from pgfeatures.config import BYTE_ORDERS, Settings
from pgfeatures.db import get_engine
from pgfeatures.exceptions import PgFeaturesError
from pgfeatures.lib.columns import Column, category_of
from pgfeatures.lib.constants import DEFAULT_GEOMETRY_COLUMN, DEFAULT_SRID
from pgfeatures.lib.geofiles import load_features, source_fields
from pgfeatures.lib.table import FeatureTable
from pgfeatures.lib.tabledump import table_to_geojson
from pgfeatures.types import Category, ColumnType

url_option = click.option(
    "--url",
    envvar="PGFEATURES_URL",
    required=True,
    help="SQLAlchemy database URL, defaults to $PGFEATURES_URL.",
)


def parse_column(value: str, tags: tuple[str, ...] = ()) -> Column:
    """Parse ``name:type[:given_srid[:target_srid]]``."""
    parts = value.split(":")
    if len(parts) < 2 or len(parts) > 4 or not parts[0]:
        raise click.BadParameter(
            f"{value!r} should look like name:type[:given_srid[:target_srid]]"
        )
    name, column_type = parts[0], parts[1]
    if category_of(column_type) is None:
        raise click.BadParameter(f"Unknown column type {column_type!r} for {name}")
    try:
        srids = [int(p) for p in parts[2:]]
    except ValueError:
        raise click.BadParameter(f"SRIDs for {name} should be integers")
    srids += [None] * (2 - len(srids))
    column_tags = tags if category_of(column_type) is Category.TAGMAP else ()
    return Column(name, column_type, srids[0], srids[1], column_tags)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages.")
def pgfeatures(verbose: bool):
    """Bulk load GeoJSON features into PostGIS tables and dump them back out."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@pgfeatures.command()
@click.argument("geojson_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("table")
@url_option
@click.option(
    "--column",
    "columns",
    multiple=True,
    help="Column as name:type[:given_srid[:target_srid]], repeatable. "
    "Inferred from the file when omitted.",
)
@click.option("--tags", help="Comma separated properties for the hstore column.")
@click.option("--batch-size", type=click.IntRange(min=1), default=1000, show_default=True)
@click.option("--srid", type=int, default=DEFAULT_SRID, show_default=True)
@click.option(
    "--byte-order", type=click.Choice(BYTE_ORDERS), default="little", show_default=True
)
def load(
    geojson_file: str,
    table: str,
    url: str,
    columns: tuple[str, ...],
    tags: str,
    batch_size: int,
    srid: int,
    byte_order: str,
):
    """Load the features of GEOJSON_FILE into TABLE, creating it first.

    GEOJSON_FILE: FeatureCollection, Feature or geometry file
    TABLE: Name of the table to create and fill
    """
    tag_names = tuple(t.strip() for t in tags.split(",") if t.strip()) if tags else ()
    declared = [parse_column(c, tag_names) for c in columns]
    if tag_names and not any(c.tags for c in declared):
        raise click.UsageError("--tags needs a column of type hstore.")

    if not declared:
        fields = source_fields(load_features(geojson_file))
        declared = [Column(field, ColumnType.TEXT) for field in fields]
        geometry_column = DEFAULT_GEOMETRY_COLUMN
        while geometry_column in fields:
            geometry_column = "_" + geometry_column
        declared.append(Column(geometry_column, ColumnType.GEOMETRY))
        click.echo(f"Inferred {len(declared)} columns from {geojson_file}.")

    settings = Settings(srid=srid, batch_size=batch_size, byte_order=byte_order)
    engine = get_engine(url)
    count = 0
    try:
        with FeatureTable.declare(engine, table, declared, settings) as feature_table:
            for feature in load_features(geojson_file):
                feature_table.add_feature(feature)
                count += 1
                if count % batch_size == 0:
                    click.echo(f"Loaded {count} features")
    except PgFeaturesError as e:
        raise click.ClickException(str(e))
    finally:
        engine.dispose()
    click.echo(f"Loaded {count} features into {table}.")


@pgfeatures.command()
@click.argument("table")
@click.argument("outfile", type=click.Path(dir_okay=False, writable=True))
@url_option
@click.option("--schema", default="public", show_default=True)
def dump(table: str, outfile: str, url: str, schema: str):
    """Write the rows of TABLE to OUTFILE as a GeoJSON FeatureCollection."""
    engine = get_engine(url)
    try:
        count = table_to_geojson(engine, table, outfile, schema=schema)
    except PgFeaturesError as e:
        raise click.ClickException(str(e))
    finally:
        engine.dispose()
    click.echo(f"Output geojson file created {outfile} with {count} features.")
