from __future__ import annotations

from typing import Any, Dict, Optional

from trial_merger.core.exceptions import LinkageConfigError
from trial_merger.logging import get_logger
from trial_merger.schema.items import Item, ItemFactory
from trial_merger.schema.metadata import NamedCollection, SchemaMetadata, SingleBackReference

log = get_logger("linker")


class EntityLinker:
    """
    Creates a sub-record and wires it to its parent.

    The linkage table decides the wiring, so there is no per-type code here.
    A type the table cannot place is dropped (logged), never fatal.
    """

    def __init__(self, metadata: Optional[SchemaMetadata] = None, factory: Optional[ItemFactory] = None):
        self.metadata = metadata or SchemaMetadata()
        self.factory = factory or ItemFactory()

    def create_and_link(self, parent: Item, type_name: str, fields: Optional[Dict[str, Any]] = None) -> Optional[Item]:
        try:
            linkage = self.metadata.linkage_for(type_name)
            category = self.metadata.category_of(parent.class_name)
            if category is None:
                raise LinkageConfigError(f"{parent.class_name} is not an owner category (linking {type_name})")

            if isinstance(linkage, SingleBackReference):
                if linkage.owner_category != category:
                    raise LinkageConfigError(
                        f"{type_name} belongs to a {linkage.owner_category}, not a {category}"
                    )
                child = self.factory.create(type_name, fields)
                child.set_reference(linkage.owner_category, parent)
                parent.add_to_collection(linkage.reverse_field, child)
                return child

            if isinstance(linkage, NamedCollection):
                reverse = linkage.reverse_fields.get(category)
                if not reverse:
                    raise LinkageConfigError(f"{type_name} has no reverse collection for {category}")
                child = self.factory.create(type_name, fields)
                parent.add_to_collection(linkage.collection_field, child)
                child.add_to_collection(reverse, parent)
                return child

            raise LinkageConfigError(f"Unsupported linkage for {type_name}: {linkage!r}")

        except LinkageConfigError as e:
            log.error("Dropping %s attachment to %s: %s", type_name, parent.class_name, e)
            return None
