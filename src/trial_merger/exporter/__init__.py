"""
Exporter package.

Sinks that receive flushed records, and their JSON serialization.
"""

from __future__ import annotations

from .json_exporter import (
    JsonLinesSink,
    ListSink,
    export_records_json,
    item_to_dict,
    nested_item_to_dict,
    read_json_lines,
)

__all__ = [
    "JsonLinesSink",
    "ListSink",
    "export_records_json",
    "item_to_dict",
    "nested_item_to_dict",
    "read_json_lines",
]
