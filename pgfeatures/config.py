# encoding: utf-8
import dataclasses
import logging
from typing import Any, Mapping

from pgfeatures.exceptions import ConfigError
from pgfeatures.lib.constants import DEFAULT_BATCH_SIZE, DEFAULT_SRID

logger = logging.getLogger(__name__)

PREFIX = "pgfeatures."

BYTE_ORDERS = ["little", "big"]


@dataclasses.dataclass(frozen=True)
class Settings:
    """Options shared by the encoder and the table writer.

    :param srid: SRID assumed for geometry columns that do not declare one
    :param batch_size: Number of rows accumulated before a flush
    :param byte_order: Byte order of the encoded WKB, ``little`` or ``big``
    :param extensions: Extensions created before a table is declared
    """

    srid: int = DEFAULT_SRID
    batch_size: int = DEFAULT_BATCH_SIZE
    byte_order: str = "little"
    extensions: tuple[str, ...] = ("postgis", "hstore")

    def __post_init__(self):
        if (
            isinstance(self.batch_size, bool)
            or not isinstance(self.batch_size, int)
            or self.batch_size < 1
        ):
            raise ConfigError(
                {"batch_size": f"Should be a positive integer, got {self.batch_size!r}"}
            )
        if self.byte_order not in BYTE_ORDERS:
            raise ConfigError(
                {"byte_order": f"Should be either of {' or '.join(BYTE_ORDERS)}"}
            )
        if isinstance(self.srid, bool) or not isinstance(self.srid, int):
            raise ConfigError({"srid": f"Should be an integer, got {self.srid!r}"})

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], prefix: str = PREFIX) -> "Settings":
        """Build settings from a flat mapping such as an ini section or os.environ.

        Keys that do not start with the prefix are ignored, keys that do but
        name no setting are rejected.

        :param values: Mapping of prefixed names to values
        :param prefix: Prefix shared by every setting (Default value = 'pgfeatures.')
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        options = {}
        for long_name, value in values.items():
            if not long_name.startswith(prefix):
                continue
            name = long_name[len(prefix) :]

            if name not in fields:
                raise ConfigError({long_name: "Unknown configuration setting"})
            options[name] = _parse(name, value)

        logger.debug(f"Loaded settings {options}")
        return cls(**options)

    def replace(self, **changes) -> "Settings":
        return dataclasses.replace(self, **changes)


def _parse(name: str, value: Any) -> Any:
    if name in ("srid", "batch_size") and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise ConfigError({name: f"Should be an integer, got {value!r}"})
    if name == "extensions":
        if isinstance(value, str):
            value = value.split(",")
        return tuple(v.strip() for v in value if v.strip())
    if name == "byte_order" and isinstance(value, str):
        return value.lower()
    return value
