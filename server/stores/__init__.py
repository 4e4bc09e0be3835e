"""Stores package for shared Flip 7 table state."""

from .table_store import TableStore, get_table_store, close_table_store, encode_table, decode_table

__all__ = [
    "TableStore",
    "get_table_store",
    "close_table_store",
    "encode_table",
    "decode_table",
]
