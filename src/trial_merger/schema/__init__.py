from trial_merger.schema.items import Item, ItemFactory
from trial_merger.schema.linker import EntityLinker
from trial_merger.schema.metadata import (
    NamedCollection,
    SchemaMetadata,
    SingleBackReference,
    load_schema_metadata,
)

__all__ = [
    "EntityLinker",
    "Item",
    "ItemFactory",
    "NamedCollection",
    "SchemaMetadata",
    "SingleBackReference",
    "load_schema_metadata",
]
