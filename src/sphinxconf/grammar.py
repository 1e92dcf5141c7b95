"""Sections of the searchd/indexer configuration file and their rendering.

Every section renders as::

    <header>
    {
      name = value
      name = value
    }

List values produce one line per entry, booleans render as 1/0, an empty
string renders as ``name = `` and None omits the line entirely.
``#`` starts a comment in this grammar, so it is written as ``\\#``; a trailing
backslash would continue the line and is rejected.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import RenderError
from .options import INDEX_OPTIONS, INDEXER_OPTIONS, SEARCHD_OPTIONS
from .version import version_tuple

Setting = Tuple[str, Any]

# Characters that would end a section or a setting early
FORBIDDEN_CHARACTERS = ("}", "\n", "\r")

# searchd versions from 0.9.9 on bind through "listen" instead of address/port
LISTEN_VERSION = (0, 9, 9)

SOURCE_SETTING_ORDER: Tuple[str, ...] = (
    "type",
    "sql_host",
    "sql_user",
    "sql_pass",
    "sql_db",
    "sql_port",
    "sql_sock",
    "mysql_connect_flags",
    "mysql_ssl_cert",
    "mysql_ssl_key",
    "mysql_ssl_ca",
    "sql_query_pre",
    "sql_query",
    "sql_query_range",
    "sql_range_step",
    "sql_query_killlist",
    "sql_attr_uint",
    "sql_attr_bool",
    "sql_attr_bigint",
    "sql_attr_timestamp",
    "sql_attr_str2ordinal",
    "sql_attr_float",
    "sql_attr_multi",
    "sql_attr_string",
    "sql_ranged_throttle",
    "sql_query_info",
    "sql_query_post",
    "sql_query_post_index",
    "unpack_zlib",
    "unpack_mysqlcompress",
    "unpack_mysqlcompress_maxsize",
)


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def render_setting(section: str, name: str, value: Any) -> List[str]:
    """Lines for one setting (none when the value is unset).

    Raises:
        RenderError: If a value contains a character that would corrupt
            the file structure
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        values = list(value)
    else:
        values = [value]

    lines = []
    for item in values:
        if item is None:
            continue
        text = render_value(item)
        for char in FORBIDDEN_CHARACTERS:
            if char in text:
                raise RenderError(
                    f"Value for '{name}' in '{section}' contains {char!r}: {text!r}"
                )
        if text.endswith("\\"):
            raise RenderError(
                f"Value for '{name}' in '{section}' ends with a line continuation: {text!r}"
            )
        text = text.replace("#", "\\#")
        lines.append(f"  {name} = {text}")
    return lines


def render_section(header: str, settings: Iterable[Setting]) -> str:
    lines = [header, "{"]
    for name, value in settings:
        lines.extend(render_setting(header, name, value))
    lines.append("}")
    return "\n".join(lines) + "\n"


@dataclass
class SqlSource:
    """SQL data source feeding one index."""
    name: str
    type: str = "mysql"
    sql_host: Optional[str] = None
    sql_user: Optional[str] = None
    sql_pass: Optional[str] = None
    sql_db: Optional[str] = None
    sql_port: Optional[int] = None
    sql_sock: Optional[str] = None
    sql_query_pre: List[str] = field(default_factory=list)
    sql_query: Optional[str] = None
    sql_query_range: Optional[str] = None
    sql_query_info: Optional[str] = None
    sql_attr_uint: List[str] = field(default_factory=list)
    sql_attr_bool: List[str] = field(default_factory=list)
    sql_attr_bigint: List[str] = field(default_factory=list)
    sql_attr_timestamp: List[str] = field(default_factory=list)
    sql_attr_str2ordinal: List[str] = field(default_factory=list)
    sql_attr_float: List[str] = field(default_factory=list)
    sql_attr_multi: List[str] = field(default_factory=list)
    sql_attr_string: List[str] = field(default_factory=list)
    # Remaining source options (sql_range_step, sql_query_post, ...)
    options: Dict[str, Any] = field(default_factory=dict)

    def settings(self) -> Iterator[Setting]:
        values = dict(self.options)
        values.update(
            type=self.type,
            sql_host=self.sql_host,
            sql_user=self.sql_user,
            sql_pass=self.sql_pass,
            sql_db=self.sql_db,
            sql_port=self.sql_port,
            sql_sock=self.sql_sock,
            sql_query_pre=self.sql_query_pre,
            sql_query=self.sql_query,
            sql_query_range=self.sql_query_range,
            sql_query_info=self.sql_query_info,
            sql_attr_uint=self.sql_attr_uint,
            sql_attr_bool=self.sql_attr_bool,
            sql_attr_bigint=self.sql_attr_bigint,
            sql_attr_timestamp=self.sql_attr_timestamp,
            sql_attr_str2ordinal=self.sql_attr_str2ordinal,
            sql_attr_float=self.sql_attr_float,
            sql_attr_multi=self.sql_attr_multi,
            sql_attr_string=self.sql_attr_string,
        )
        for name in SOURCE_SETTING_ORDER:
            yield name, values.get(name)

    def render(self) -> str:
        if not self.sql_query:
            raise RenderError(f"Source '{self.name}' has no sql_query")
        return render_section(f"source {self.name}", self.settings())


@dataclass
class RealIndex:
    """An index built by the indexer from one or more sources.

    A delta index names its core index as ``parent`` and inherits every
    setting it does not override.
    """
    name: str
    path: str
    sources: List[SqlSource] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    prefix_fields: List[str] = field(default_factory=list)
    infix_fields: List[str] = field(default_factory=list)
    parent: Optional[str] = None

    @property
    def header(self) -> str:
        if self.parent:
            return f"index {self.name} : {self.parent}"
        return f"index {self.name}"

    def settings(self) -> Iterator[Setting]:
        for source in self.sources:
            yield "source", source.name
        yield "path", self.path
        for name in INDEX_OPTIONS:
            yield name, self.options.get(name)
        # Absent rather than empty when no fields are tagged
        if self.prefix_fields:
            yield "prefix_fields", ", ".join(self.prefix_fields)
        if self.infix_fields:
            yield "infix_fields", ", ".join(self.infix_fields)

    def render(self) -> str:
        if not self.sources:
            raise RenderError(f"Index '{self.name}' has no sources")
        return render_section(self.header, self.settings())


@dataclass
class DistributedIndex:
    """Logical index aggregating local (and optionally remote) indices."""
    name: str
    local_indices: List[str] = field(default_factory=list)
    agents: List[str] = field(default_factory=list)

    def settings(self) -> Iterator[Setting]:
        yield "type", "distributed"
        yield "local", self.local_indices
        yield "agent", self.agents

    def render(self) -> str:
        if not self.local_indices and not self.agents:
            raise RenderError(f"Distributed index '{self.name}' has no members")
        return render_section(f"index {self.name}", self.settings())


Index = Union[RealIndex, DistributedIndex]


@dataclass
class Indexer:
    options: Dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        return render_section("indexer", ((name, self.options.get(name)) for name in INDEXER_OPTIONS))


@dataclass
class Searchd:
    addresses: List[str] = field(default_factory=list)
    port: Optional[int] = None
    log: Optional[str] = None
    query_log: Optional[str] = None
    pid_file: Optional[str] = None
    version: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def uses_listen(self) -> bool:
        if not self.version:
            return True
        return version_tuple(self.version) >= LISTEN_VERSION

    def settings(self) -> Iterator[Setting]:
        if self.uses_listen():
            if self.port is not None:
                yield "listen", [f"{address}:{self.port}" for address in self.addresses]
        else:
            yield "address", self.addresses
            yield "port", self.port
        yield "log", self.log
        yield "query_log", self.query_log
        yield "pid_file", self.pid_file
        for name in SEARCHD_OPTIONS:
            yield name, self.options.get(name)

    def render(self) -> str:
        return render_section("searchd", self.settings())


@dataclass
class SphinxConfiguration:
    """Everything one configuration file contains."""
    indexer: Indexer = field(default_factory=Indexer)
    searchd: Searchd = field(default_factory=Searchd)
    indices: List[Index] = field(default_factory=list)

    @property
    def sources(self) -> List[SqlSource]:
        sources = []
        for index in self.indices:
            match index:
                case RealIndex():
                    sources.extend(index.sources)
                case DistributedIndex():
                    pass
        return sources

    def render(self) -> str:
        sections = [self.indexer.render(), self.searchd.render()]
        for index in self.indices:
            match index:
                case RealIndex():
                    sections.extend(source.render() for source in index.sources)
                    sections.append(index.render())
                case DistributedIndex():
                    sections.append(index.render())
                case _:
                    raise RenderError(f"Unknown index kind: {index!r}")
        return "\n".join(sections)
