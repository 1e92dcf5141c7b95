"""SQL dialect differences between the MySQL and PostgreSQL sources."""

from typing import Optional


class MysqlDialect:
    source_type = "mysql"
    quote_char = "`"
    null_fallback = "IFNULL"
    true_literal = "1"
    false_literal = "0"

    def quote(self, identifier: str) -> str:
        """Quote ``table.column`` or ``column``."""
        q = self.quote_char
        return ".".join(f"{q}{part}{q}" for part in identifier.split("."))

    def utf8_query_pre(self) -> Optional[str]:
        return "SET NAMES utf8"

    def concatenate(self, expression: str) -> str:
        return f"GROUP_CONCAT(DISTINCT {self.null_fallback}({expression}, '0') SEPARATOR ' ')"

    def timestamp(self, expression: str) -> str:
        return f"UNIX_TIMESTAMP({expression})"

    def crc(self, expression: str, default: str) -> str:
        return f"CRC32({self.null_fallback}({expression}, '{default}'))"


class PostgresDialect(MysqlDialect):
    source_type = "pgsql"
    quote_char = '"'
    null_fallback = "COALESCE"
    true_literal = "TRUE"
    false_literal = "FALSE"

    def utf8_query_pre(self) -> Optional[str]:
        # client encoding follows the database encoding
        return None

    def concatenate(self, expression: str) -> str:
        return f"array_to_string(array_agg(DISTINCT {self.null_fallback}({expression}::text, '0')), ' ')"

    def timestamp(self, expression: str) -> str:
        return f"cast(extract(epoch from {expression}) as int)"

    def crc(self, expression: str, default: str) -> str:
        # crc32() must be installed in the database as a SQL function
        return f"crc32({self.null_fallback}({expression}, '{default}'))"


DIALECTS = {
    "mysql": MysqlDialect,
    "postgresql": PostgresDialect,
}


def get_dialect(adapter: str) -> MysqlDialect:
    """
    Get SQL dialect by adapter name.

    Args:
        adapter: 'mysql' or 'postgresql'

    Raises:
        ValueError: If adapter is unknown
    """
    if adapter not in DIALECTS:
        raise ValueError(f"Unknown database adapter: {adapter}. Available: {list(DIALECTS.keys())}")
    return DIALECTS[adapter]()
