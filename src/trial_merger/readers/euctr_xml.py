"""
Streaming reader for the EU old registry XML export.

One ``<trial>`` element per participating country. Elements are cleared
once read, so memory stays flat on large exports.

    <trials>
      <trial>
        <main_info>
          <trial_id>2004-000232-91-DE</trial_id>
          <public_title>...</public_title>
          ...
        </main_info>
        <contacts><contact><firstname/><lastname/></contact></contacts>
        <countries><country_name>Germany</country_name></countries>
        <ethics_reviews>
          <ethics_review><status/><approval_date/></ethics_review>
        </ethics_reviews>
      </trial>
    </trials>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, List, Optional, Union

from trial_merger import vocab
from trial_merger.dates import parse_registry_date
from trial_merger.identity.resolver import Regime
from trial_merger.logging import get_logger
from trial_merger.readers.tabular import parse_count
from trial_merger.rows import CountryEntry, EthicsReview, TrialRow

log = get_logger("readers")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].lower()


def _child(elem: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if elem is None:
        return None
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def _children(elem: Optional[ET.Element], name: str) -> List[ET.Element]:
    if elem is None:
        return []
    return [child for child in elem if _local(child.tag) == name]


def _text(elem: Optional[ET.Element], name: str) -> Optional[str]:
    child = _child(elem, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _trial_to_row(trial: ET.Element, index: int) -> TrialRow:
    main = _child(trial, "main_info")

    people = []
    for contact in _children(_child(trial, "contacts"), "contact"):
        name = " ".join(p for p in (_text(contact, "firstname"), _text(contact, "lastname")) if p)
        if name:
            people.append(name)

    reviews = [
        EthicsReview(
            status=_text(review, "status"),
            approval_date=parse_registry_date(_text(review, "approval_date")),
        )
        for review in _children(_child(trial, "ethics_reviews"), "ethics_review")
    ]

    countries = [
        CountryEntry(c.text.strip())
        for c in _children(_child(trial, "countries"), "country_name")
        if c.text and c.text.strip()
    ]

    return TrialRow(
        source=vocab.REGISTRY_EU_OLD,
        regime=Regime.SPLIT_BY_COUNTRY,
        primary_id=_text(main, "trial_id") or "",
        public_title=_text(main, "public_title"),
        scientific_title=_text(main, "scientific_title"),
        conditions=[c for c in [_text(main, "hc_freetext")] if c],
        sponsor=_text(main, "primary_sponsor"),
        people=people,
        status=_text(main, "recruitment_status"),
        planned_enrolment=parse_count(_text(main, "target_size")),
        actual_enrolment=parse_count(_text(main, "results_actual_enrolment")),
        registration_date=parse_registry_date(_text(main, "date_registration")),
        url=_text(main, "url"),
        countries=countries,
        ethics_reviews=reviews,
        lineno=index,
    )


def read_eu_old(path: Union[str, Path]) -> Iterator[TrialRow]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    index = 0
    root = None
    for event, elem in ET.iterparse(str(path), events=("start", "end")):
        if root is None:
            root = elem
        if event != "end" or _local(elem.tag) != "trial":
            continue
        index += 1
        yield _trial_to_row(elem, index)
        elem.clear()
        # Drop the finished trial from the document root as well
        root.clear()

    log.debug("Read %d trial elements from %s", index, path.name)
