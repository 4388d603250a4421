"""
Row readers.

Each reader turns one registry export into ``TrialRow`` objects. ``READERS``
maps the source kinds used in configuration and on the command line to
their reader.
"""

from __future__ import annotations

from trial_merger.readers.euctr_xml import read_eu_old
from trial_merger.readers.tabular import read_aggregator, read_eu_new, read_us_registry

READERS = {
    "us_registry": read_us_registry,
    "eu_old": read_eu_old,
    "eu_new": read_eu_new,
    "aggregator": read_aggregator,
}

__all__ = ["READERS", "read_aggregator", "read_eu_new", "read_eu_old", "read_us_registry"]
