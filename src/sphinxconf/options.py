"""Recognized option names for index, source, indexer and searchd blocks."""

from typing import Any, Dict, Optional, Tuple


# Options rendered into every real index block
INDEX_OPTIONS: Tuple[str, ...] = (
    "blend_chars",
    "charset_table",
    "charset_type",
    "charset_dictpath",
    "docinfo",
    "enable_star",
    "exceptions",
    "expand_keywords",
    "hitless_words",
    "html_index_attrs",
    "html_remove_elements",
    "html_strip",
    "index_exact_words",
    "ignore_chars",
    "inplace_docinfo_gap",
    "inplace_enable",
    "inplace_hit_gap",
    "inplace_reloc_factor",
    "inplace_write_factor",
    "min_infix_len",
    "min_prefix_len",
    "min_stemming_len",
    "min_word_len",
    "mlock",
    "morphology",
    "ngram_chars",
    "ngram_len",
    "ondisk_dict",
    "overshort_step",
    "phrase_boundary",
    "phrase_boundary_step",
    "preopen",
    "stopwords",
    "stopwords_step",
    "wordforms",
)


# Options rendered into every SQL source block
SOURCE_OPTIONS: Tuple[str, ...] = (
    "mysql_connect_flags",
    "mysql_ssl_cert",
    "mysql_ssl_key",
    "mysql_ssl_ca",
    "sql_range_step",
    "sql_query_pre",
    "sql_query_post",
    "sql_query_killlist",
    "sql_ranged_throttle",
    "sql_query_post_index",
    "unpack_zlib",
    "unpack_mysqlcompress",
    "unpack_mysqlcompress_maxsize",
)


# Stored with the index options but consumed by the builder, never rendered
CUSTOM_OPTIONS: Tuple[str, ...] = (
    "disable_range",
)


INDEXER_OPTIONS: Tuple[str, ...] = (
    "mem_limit",
    "max_iops",
    "max_iosize",
    "max_xmlpipe2_field",
    "write_buffer",
    "max_file_field_buffer",
)


SEARCHD_OPTIONS: Tuple[str, ...] = (
    "read_timeout",
    "client_timeout",
    "max_children",
    "max_matches",
    "seamless_rotate",
    "preopen_indexes",
    "unlink_old",
    "attr_flush_period",
    "ondisk_dict_default",
    "max_packet_size",
    "mva_updates_pool",
    "crash_log_path",
    "max_filters",
    "max_filter_values",
    "listen_backlog",
    "read_buffer",
    "read_unhinted",
    "max_batch_queries",
    "subtree_docs_cache",
    "subtree_hits_cache",
    "workers",
    "dist_threads",
    "binlog_path",
    "binlog_flush",
    "binlog_max_log_size",
)


# Options whose value is an ordered list; settings loads append to them
LIST_OPTIONS: Tuple[str, ...] = (
    "sql_query_pre",
    "sql_query_post",
    "sql_query_post_index",
)


# Compiled defaults used when neither an override nor a model value is set
INDEX_OPTION_DEFAULTS: Dict[str, Any] = {
    "charset_type": "utf-8",
}


# Group names accepted as nested mappings in a settings file
OPTION_GROUPS: Dict[str, Tuple[str, ...]] = {
    "index_options": INDEX_OPTIONS + CUSTOM_OPTIONS,
    "source_options": SOURCE_OPTIONS,
    "indexer_options": INDEXER_OPTIONS,
    "searchd_options": SEARCHD_OPTIONS,
}


def is_index_option(name: str) -> bool:
    """Check whether ``name`` belongs in the index option map."""
    return name in INDEX_OPTIONS or name in CUSTOM_OPTIONS


def is_source_option(name: str) -> bool:
    """Check whether ``name`` belongs in the source option map."""
    return name in SOURCE_OPTIONS


def option_group(name: str) -> Optional[str]:
    """
    Find the option group a flat settings key belongs to.

    Index options win over the other groups; ``mem_limit`` and
    ``max_matches`` are typed settings and never reach this lookup.

    Args:
        name: Settings key (e.g., 'min_prefix_len', 'sql_query_pre')

    Returns:
        Group name ('index_options', 'source_options', ...) or None
    """
    for group, names in OPTION_GROUPS.items():
        if name in names:
            return group
    return None


def default_index_option(name: str) -> Any:
    """Registry default for an index option, or None when there is none."""
    return INDEX_OPTION_DEFAULTS.get(name)
