"""Render indexable models and configured options into a config file.

Each model gets a core source and index (plus a delta pair when the model
uses delta indexing). Models sharing a group name are aggregated into one
distributed index. Option values resolve in priority order: explicit
override on the configuration, then the model's own value, then the
registry default; options with no value are left out of the file.
"""

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from .crc import CrcIndex, crc32
from .errors import RenderError
from .grammar import (
    DistributedIndex,
    Index,
    Indexer,
    RealIndex,
    Searchd,
    SphinxConfiguration,
    SqlSource,
)
from .models import ModelDescriptor
from .options import INDEX_OPTIONS, SOURCE_OPTIONS, default_index_option
from .sql import MysqlDialect, get_dialect

if TYPE_CHECKING:
    from .configuration import Configuration

logger = logging.getLogger(__name__)

UTF8_CHARSETS = ("utf-8", "utf8")


def file_mode(path: Path) -> int:
    """Mode for a written config: the existing file's, else 0666 minus the umask."""
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def resolve_option(
    name: str,
    overrides: Mapping[str, Any],
    model_values: Mapping[str, Any],
    default: Any = None
) -> Any:
    """Pick the first set value: override, then model value, then default.

    None and empty lists count as unset, so a cleared override never hides
    a model value.
    """
    for value in (overrides.get(name), model_values.get(name)):
        if value is not None and value != []:
            return value
    return default


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class ConfigBuilder:
    """Builds the configuration for a set of model descriptors."""

    def __init__(self, configuration: "Configuration", descriptors: Iterable[ModelDescriptor]):
        self.configuration = configuration
        self.descriptors = list(descriptors)

    @property
    def settings(self):
        return self.configuration.settings

    def generate(self) -> SphinxConfiguration:
        """
        Build the in-memory configuration.

        Returns:
            SphinxConfiguration with indexer, searchd and all indices

        Raises:
            CrcCollisionError: If two model names share a checksum
            RenderError: If a descriptor names an unknown attribute type or association
            ValueError: If the database adapter is unknown
        """
        CrcIndex(self.descriptors).check()

        dialect = get_dialect(self.settings.database.adapter)
        config = SphinxConfiguration(indexer=self._indexer(), searchd=self._searchd())

        groups: Dict[str, List[str]] = {}
        model_count = len(self.descriptors)
        for offset, descriptor in enumerate(self.descriptors):
            indices = self._real_indices(descriptor, offset, model_count, dialect)
            config.indices.extend(indices)
            groups.setdefault(descriptor.group_name, []).extend(index.name for index in indices)

        for name, local_indices in groups.items():
            config.indices.append(DistributedIndex(name=name, local_indices=local_indices))

        logger.debug(f"Generated {len(config.indices)} indices for {model_count} models")
        return config

    def render(self) -> str:
        return self.generate().render()

    def build(self, path: Optional[Path] = None, generated: Optional[SphinxConfiguration] = None) -> Path:
        """
        Render and write the configuration file.

        The text is fully rendered before anything touches the disk, then
        written to a temporary file beside the target and moved into place,
        so a failed build never leaves a partial file. The file keeps the
        mode of the file it replaces, or gets the umask default when new.

        Args:
            path: Output path (default: settings.config_file)
            generated: Configuration from an earlier ``generate()`` call
                (default: generate now)

        Returns:
            Path written
        """
        path = Path(path or self.settings.config_file)
        if generated is None:
            generated = self.generate()
        text = generated.render()

        path.parent.mkdir(parents=True, exist_ok=True)
        mode = file_mode(path)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            # mkstemp always creates 0600
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Wrote {path}")
        return path

    def _indexer(self) -> Indexer:
        options: Dict[str, Any] = {"mem_limit": self.settings.mem_limit}
        options.update(
            (k, v) for k, v in self.configuration.indexer_options.items() if v is not None
        )
        return Indexer(options=options)

    def _searchd(self) -> Searchd:
        options: Dict[str, Any] = {
            k: v for k, v in self.configuration.searchd_options.items() if v is not None
        }
        # Shared with client(), so the typed setting always wins
        options["max_matches"] = self.settings.max_matches
        return Searchd(
            addresses=self.settings.addresses,
            port=self.settings.port,
            log=self.settings.searchd_log_file,
            query_log=self.settings.query_log_file,
            pid_file=self.settings.pid_file,
            version=self.configuration.version(),
            options=options,
        )

    def _index_options(self, descriptor: ModelDescriptor) -> Dict[str, Any]:
        options = {}
        for name in INDEX_OPTIONS:
            value = resolve_option(
                name,
                self.configuration.index_options,
                descriptor.index_options,
                default_index_option(name),
            )
            if value is not None:
                options[name] = value
        return options

    def _real_indices(
        self,
        descriptor: ModelDescriptor,
        offset: int,
        model_count: int,
        dialect: MysqlDialect
    ) -> List[Index]:
        options = self._index_options(descriptor)
        utf8 = str(options.get("charset_type", "")).lower() in UTF8_CHARSETS
        ranged = not resolve_option(
            "disable_range", self.configuration.index_options, descriptor.index_options, False
        )
        base_path = Path(self.settings.searchd_file_path)

        core_source = self._source(
            descriptor,
            f"{descriptor.core_name}_0",
            offset,
            model_count,
            dialect,
            delta=False if descriptor.delta else None,
            utf8=utf8,
            ranged=ranged,
        )
        core = RealIndex(
            name=descriptor.core_name,
            path=str(base_path / descriptor.core_name),
            sources=[core_source],
            options=options,
            prefix_fields=descriptor.prefix_fields,
            infix_fields=descriptor.infix_fields,
        )
        if not descriptor.delta:
            return [core]

        delta_source = self._source(
            descriptor,
            f"{descriptor.delta_name}_0",
            offset,
            model_count,
            dialect,
            delta=True,
            utf8=utf8,
            ranged=ranged,
        )
        delta = RealIndex(
            name=descriptor.delta_name,
            path=str(base_path / descriptor.delta_name),
            sources=[delta_source],
            parent=descriptor.core_name,
        )
        return [core, delta]

    def _source(
        self,
        descriptor: ModelDescriptor,
        name: str,
        offset: int,
        model_count: int,
        dialect: MysqlDialect,
        delta: Optional[bool],
        utf8: bool,
        ranged: bool
    ) -> SqlSource:
        """Source block for one index.

        ``delta`` is None for models without delta indexing, False for the
        core source of a delta model and True for its delta source.
        """
        database = self.settings.database
        source = SqlSource(
            name=name,
            type=dialect.source_type,
            sql_host=database.host,
            sql_user=database.username,
            sql_pass=database.password,
            sql_db=database.database,
            sql_port=database.port,
            sql_sock=database.socket,
        )

        overrides = self.configuration.source_options
        for option in SOURCE_OPTIONS:
            if option == "sql_query_pre":
                continue
            value = resolve_option(option, overrides, descriptor.source_options)
            if value is not None:
                source.options[option] = value

        # User statements first, then the statements delta and charset
        # handling depend on
        source.sql_query_pre = as_list(
            resolve_option("sql_query_pre", overrides, descriptor.source_options)
        )
        if delta is False:
            source.sql_query_pre.append(self._delta_reset(descriptor, dialect))
        if utf8 and dialect.utf8_query_pre():
            source.sql_query_pre.append(dialect.utf8_query_pre())

        self._add_attributes(source, descriptor)
        source.sql_query = self._sql_query(descriptor, offset, model_count, dialect, delta, ranged)
        if ranged:
            source.sql_query_range = self._sql_query_range(descriptor, dialect, delta)
        source.sql_query_info = self._sql_query_info(descriptor, offset, model_count, dialect)
        return source

    def _add_attributes(self, source: SqlSource, descriptor: ModelDescriptor) -> None:
        source.sql_attr_uint = ["class_crc", "sphinx_deleted"]
        # The internal id is always 64-bit: ids from every model share one space
        source.sql_attr_bigint = ["sphinx_internal_id"]
        source.sql_attr_str2ordinal = [f"{f.name}_sort" for f in descriptor.fields if f.sortable]

        by_type = {
            "uint": source.sql_attr_uint,
            "bigint": source.sql_attr_bigint,
            "bool": source.sql_attr_bool,
            "float": source.sql_attr_float,
            "timestamp": source.sql_attr_timestamp,
            "str2ordinal": source.sql_attr_str2ordinal,
            "string": source.sql_attr_string,
        }
        for attribute in descriptor.attributes:
            if attribute.type == "multi":
                source.sql_attr_multi.append(f"uint {attribute.name} from field")
            elif attribute.type not in by_type:
                raise RenderError(
                    f"Attribute '{attribute.name}' of {descriptor.name} has unknown type '{attribute.type}'"
                )
            elif attribute.name not in by_type[attribute.type]:
                by_type[attribute.type].append(attribute.name)

    def _delta_reset(self, descriptor: ModelDescriptor, dialect: MysqlDialect) -> str:
        q = dialect.quote
        return (
            f"UPDATE {q(descriptor.table_name)} SET {q('delta')} = {dialect.false_literal} "
            f"WHERE {q('delta')} = {dialect.true_literal}"
        )

    def _delta_condition(self, descriptor: ModelDescriptor, dialect: MysqlDialect, delta: bool) -> str:
        literal = dialect.true_literal if delta else dialect.false_literal
        return f"{dialect.quote(descriptor.table_name + '.delta')} = {literal}"

    def _is_many(self, descriptor: ModelDescriptor, association: Optional[str]) -> bool:
        if association is None:
            return False
        try:
            return descriptor.association(association).macro == "has_many"
        except KeyError as e:
            raise RenderError(f"{descriptor.name} reads through undeclared association '{association}'") from e

    def _sql_query(
        self,
        descriptor: ModelDescriptor,
        offset: int,
        model_count: int,
        dialect: MysqlDialect,
        delta: Optional[bool],
        ranged: bool
    ) -> str:
        q = dialect.quote
        table = descriptor.table_name
        primary_key = q(f"{table}.{descriptor.primary_key}")

        columns = [f"{primary_key} * {model_count} + {offset} AS {q('id')}"]
        group_by = [primary_key]
        aggregated = False

        for f in descriptor.fields:
            expression = q(f"{f.association or table}.{f.source_column}")
            if self._is_many(descriptor, f.association):
                expression = dialect.concatenate(expression)
                aggregated = True
            else:
                group_by.append(expression)
            columns.append(f"{expression} AS {q(f.name)}")
            if f.sortable:
                columns.append(f"{expression} AS {q(f.name + '_sort')}")

        for attribute in descriptor.attributes:
            column = q(f"{attribute.association or table}.{attribute.source_column}")
            expression = column
            if attribute.type == "timestamp":
                expression = dialect.timestamp(column)
            if attribute.type == "multi" or self._is_many(descriptor, attribute.association):
                expression = dialect.concatenate(expression)
                aggregated = True
            else:
                group_by.append(column)
            columns.append(f"{expression} AS {q(attribute.name)}")

        if descriptor.subclasses:
            class_column = q(f"{table}.{descriptor.inheritance_column}")
            class_crc = dialect.crc(class_column, descriptor.name)
            group_by.append(class_column)
        else:
            class_crc = str(crc32(descriptor.name))

        columns.append(f"{primary_key} AS {q('sphinx_internal_id')}")
        columns.append(f"{class_crc} AS {q('class_crc')}")
        columns.append(f"0 AS {q('sphinx_deleted')}")

        sql = f"SELECT {', '.join(columns)} FROM {q(table)}"
        for association in descriptor.associations:
            alias = association.name
            if association.macro == "has_many":
                on = f"{q(alias + '.' + association.foreign_key)} = {primary_key}"
            else:
                on = f"{q(alias + '.' + association.primary_key)} = {q(table + '.' + association.foreign_key)}"
            sql += f" LEFT OUTER JOIN {q(association.table)} {q(alias)} ON {on}"

        conditions = []
        if ranged:
            conditions += [f"{primary_key} >= $start", f"{primary_key} <= $end"]
        if delta is not None:
            conditions.append(self._delta_condition(descriptor, dialect, delta))
        conditions += [f"({condition})" for condition in descriptor.conditions]
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        if aggregated:
            sql += " GROUP BY " + ", ".join(dict.fromkeys(group_by))
        return sql

    def _sql_query_range(self, descriptor: ModelDescriptor, dialect: MysqlDialect, delta: Optional[bool]) -> str:
        q = dialect.quote
        table = descriptor.table_name
        primary_key = q(f"{table}.{descriptor.primary_key}")
        fallback = dialect.null_fallback
        sql = f"SELECT {fallback}(MIN({primary_key}), 1), {fallback}(MAX({primary_key}), 1) FROM {q(table)}"
        if delta is not None:
            sql += f" WHERE {self._delta_condition(descriptor, dialect, delta)}"
        return sql

    def _sql_query_info(self, descriptor: ModelDescriptor, offset: int, model_count: int, dialect: MysqlDialect) -> str:
        q = dialect.quote
        table = descriptor.table_name
        return (
            f"SELECT * FROM {q(table)} "
            f"WHERE {q(table + '.' + descriptor.primary_key)} = (($id - {offset}) / {model_count})"
        )
