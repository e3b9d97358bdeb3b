"""
Tests for column declarations, type categories and value coercion
"""

import math

import pytest
from sqlalchemy import Float, Integer, LargeBinary, Text

from pgfeatures.exceptions import SchemaError
from pgfeatures.lib.columns import Column, TableSchema, category_of, coerce
from pgfeatures.types import Category, ColumnType


def _quote(name):
    return f'"{name}"'


class TestCategoryOf:
    @pytest.mark.parametrize(
        "logical_type, category",
        [
            (ColumnType.SMALLINT, Category.INT),
            (ColumnType.BIGSERIAL, Category.INT),
            ("integer", Category.INT),
            ("numeric(10, 2)", Category.FLOAT),
            ("double precision", Category.FLOAT),
            ("REAL", Category.FLOAT),
            ("varchar(32)", Category.STRING),
            ("character varying", Category.STRING),
            ("bytea", Category.STRING),
            ("timestamp with time zone", Category.STRING),
            ("interval", Category.STRING),
            ("boolean", Category.BOOL),
            ("bool", Category.BOOL),
            (ColumnType.GEOMETRY, Category.GEOMETRY),
            ("hstore", Category.TAGMAP),
        ],
    )
    def test_known_types(self, logical_type, category):
        assert category_of(logical_type) is category

    @pytest.mark.parametrize("logical_type", ["jsonb", "USER-DEFINED", "", "ARRAY"])
    def test_unknown_types(self, logical_type):
        assert category_of(logical_type) is None

    def test_every_column_type_has_a_category(self):
        for column_type in ColumnType:
            assert category_of(column_type) is not None


class TestCoerce:
    @pytest.mark.parametrize(
        "value, category, expected",
        [
            pytest.param(12, Category.STRING, "12", id="int to string"),
            pytest.param(12, Category.FLOAT, 12.0, id="int to float"),
            pytest.param(12, Category.INT, 12, id="int to int"),
            pytest.param(2.9, Category.INT, 2, id="float to int truncates"),
            pytest.param(-2.9, Category.INT, -2, id="negative float truncates"),
            pytest.param(1.5, Category.STRING, "1.5", id="float to string"),
            pytest.param(1e21, Category.STRING, "1000000000000000000000", id="large float"),
            pytest.param(1e-7, Category.STRING, "0.0000001", id="small float"),
            pytest.param("12", Category.INT, 12, id="string to int"),
            pytest.param("12a", Category.INT, 0, id="bad string to int"),
            pytest.param("1.5", Category.INT, 0, id="decimal string to int"),
            pytest.param("1.5", Category.FLOAT, 1.5, id="string to float"),
            pytest.param("abc", Category.FLOAT, 0.0, id="bad string to float"),
            pytest.param("abc", Category.STRING, "abc", id="string to string"),
            pytest.param(True, Category.BOOL, True, id="bool to bool"),
            pytest.param(True, Category.INT, None, id="bool to int"),
            pytest.param(True, Category.STRING, None, id="bool to string"),
            pytest.param("true", Category.BOOL, None, id="string to bool"),
            pytest.param(1, Category.BOOL, None, id="int to bool"),
            pytest.param(None, Category.INT, None, id="none"),
            pytest.param("x", Category.GEOMETRY, None, id="to geometry"),
            pytest.param(1, Category.TAGMAP, None, id="to tagmap"),
            pytest.param([1, 2], Category.STRING, None, id="list"),
        ],
    )
    def test_rules(self, value, category, expected):
        result = coerce(value, category)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_float_to_int(self, value):
        assert coerce(value, Category.INT) is None

    def test_huge_int_to_float(self):
        assert coerce(10**400, Category.FLOAT) is None

    @pytest.mark.parametrize(
        "value", [None, True, 0, -1, 1.5, math.nan, "", "x", "1e5", b"raw", {}, object()]
    )
    @pytest.mark.parametrize("category", list(Category))
    def test_total(self, value, category):
        coerce(value, category)


class TestTableSchema:
    def test_create_statement(self):
        schema = TableSchema(
            "places",
            [
                Column("name", ColumnType.TEXT),
                Column("pop", "integer"),
                Column("geom", ColumnType.GEOMETRY),
            ],
        )
        assert (
            schema.create_statement(_quote)
            == 'CREATE TABLE "places" ("name" text, "pop" integer, "geom" geometry);'
        )

    def test_placeholders(self):
        schema = TableSchema(
            "places",
            [Column("name", "text"), Column("pop", "numeric"), Column("geom", "geometry")],
        )
        placeholders = schema.placeholders()
        assert [p.type_ for p in placeholders] == [Text, Float, LargeBinary]
        assert placeholders[0].render("p0") == ":p0"
        assert placeholders[2].render("p2") == "ST_GeomFromWKB(:p2, 4326)"

    def test_default_srid(self):
        schema = TableSchema("places", [Column("geom", "geometry")], srid=3857)
        stored = schema.stored[0].column
        assert stored.given_srid == stored.target_srid == 3857

    def test_reprojection(self):
        schema = TableSchema(
            "places", [Column("geom", "geometry", given_srid=4326, target_srid=3857)]
        )
        assert (
            schema.placeholders()[0].render("p0")
            == "ST_Transform(ST_GeomFromWKB(:p0, 4326), 3857)"
        )

    def test_target_defaults_to_default_srid(self):
        schema = TableSchema("places", [Column("geom", "geometry", given_srid=3857)])
        assert (
            schema.placeholders()[0].render("p0")
            == "ST_Transform(ST_GeomFromWKB(:p0, 3857), 4326)"
        )

    def test_tag_columns_folded(self):
        schema = TableSchema(
            "places",
            [
                Column("name", "text"),
                Column("a", "text"),
                Column("b", "integer"),
                Column("tags", ColumnType.HSTORE, tags=("a", "b", "c")),
            ],
        )
        assert schema.column_names == ["name", "tags"]
        assert schema.tags == ("a", "b", "c")
        assert (
            schema.create_statement(_quote)
            == 'CREATE TABLE "places" ("name" text, "tags" hstore);'
        )
        assert [p.type_ for p in schema.placeholders()] == [Text, Text]

    def test_hstore_alias_created_as_hstore(self):
        schema = TableSchema("places", [Column("tags", "hstore_tags")])
        assert schema.create_statement(_quote) == 'CREATE TABLE "places" ("tags" hstore);'

    def test_unknown_type_rejected(self):
        with pytest.raises(SchemaError):
            TableSchema("places", [Column("data", "jsonb")])

    def test_unknown_type_as_text_when_not_strict(self):
        schema = TableSchema("places", [Column("data", "jsonb")], strict=False)
        assert schema.stored[0].category is Category.STRING
        assert schema.create_statement(_quote) == 'CREATE TABLE "places" ("data" jsonb);'

    def test_duplicate_names_rejected(self):
        with pytest.raises(SchemaError):
            TableSchema("places", [Column("a", "text"), Column("a", "integer")])

    def test_second_tag_map_rejected(self):
        with pytest.raises(SchemaError):
            TableSchema(
                "places", [Column("t1", "hstore"), Column("t2", ColumnType.HSTORE)]
            )

    @pytest.mark.parametrize("logical_type", ["text", "jsonb"])
    def test_tags_on_plain_column_rejected(self, logical_type):
        with pytest.raises(SchemaError):
            TableSchema(
                "places",
                [Column("a", "text"), Column("tags", logical_type, tags=("a",))],
                strict=False,
            )

    def test_empty_rejected(self):
        with pytest.raises(SchemaError):
            TableSchema("places", [])

    def test_int_columns_bind_as_integer(self):
        schema = TableSchema("places", [Column("id", ColumnType.BIGINT)])
        assert schema.placeholders()[0].type_ is Integer
