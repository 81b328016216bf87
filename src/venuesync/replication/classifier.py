"""
osmChange parsing and bitcoin-venue classification.

A change-file has ``create``/``modify``/``delete`` sections holding
``node``/``way``/``relation`` elements. Only entities that accept bitcoin are
tracked, but a ``modify`` that drops the payment tags still has to reach the
cache so the venue gets removed.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from pathlib import Path

from venuesync.exceptions import DiffParseError
from venuesync.replication.types import ChangeRecord, ChangeSet, EntityType
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.classifier")

BITCOIN_TAGS = (
    "payment:bitcoin",
    "payment:lightning",
    "currency:XBT",
    "bitcoin",
)

SECTIONS = ("create", "modify", "delete")

# C0 controls, DEL and C1 controls
_CONTROL_CHARS = re.compile("[\u0000-\u001f\u007f-\u009f]")


def sanitize_tag_value(value: str) -> str:
    return _CONTROL_CHARS.sub("", value).strip()


def sanitize_tags(tags: Mapping[str, str]) -> dict[str, str]:
    """Strip control characters from tag values, then trim them."""
    return {k: sanitize_tag_value(v) for k, v in tags.items()}


def is_domain_tagged(tags: Mapping[str, str], tracked_tags: tuple[str, ...] = BITCOIN_TAGS) -> bool:
    """True if any tracked payment tag is set to "yes"."""
    return any(tags.get(key) == "yes" for key in tracked_tags)


def _parse_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_id(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class ChangeClassifier:
    """Turns osmChange documents into classified change sets."""

    def __init__(self, tracked_tags: tuple[str, ...] = BITCOIN_TAGS):
        self.tracked_tags = tracked_tags

    def is_domain_tagged(self, tags: Mapping[str, str]) -> bool:
        return is_domain_tagged(tags, self.tracked_tags)

    def classify_file(self, path: str | Path) -> ChangeSet:
        return self.classify(Path(path).read_bytes())

    def classify(self, contents: str | bytes) -> ChangeSet:
        """
        Parse and classify a change-file.

        Raises:
            DiffParseError: If the document is not well-formed XML
        """
        try:
            root = ET.fromstring(contents)
        except ET.ParseError as e:
            raise DiffParseError(f"Malformed osmChange document: {e}") from e

        changes = ChangeSet()
        if root.tag != "osmChange":
            logger.warning(f"Unexpected root element <{root.tag}>, expected <osmChange>")
            return changes

        for section in root:
            if section.tag not in SECTIONS:
                continue
            for element in section:
                self._classify_element(section.tag, element, changes)

        if changes.skipped:
            logger.debug(f"Skipped {changes.skipped} entities without id or coordinates")
        return changes

    def _classify_element(self, section: str, element: ET.Element, changes: ChangeSet) -> None:
        try:
            entity_type = EntityType(element.tag)
        except ValueError:
            return

        entity_id = _parse_id(element.get("id"))
        lat = _parse_float(element.get("lat"))
        lon = _parse_float(element.get("lon"))

        if entity_id is None or (section != "delete" and (lat is None or lon is None)):
            changes.skipped += 1
            logger.debug(f"Skipping {section} {entity_type.value} id={element.get('id')!r}: missing id or coordinates")
            return

        raw_tags: dict[str, str] = {}
        for tag in element.iter("tag"):
            key, value = tag.get("k"), tag.get("v")
            if key and value:
                raw_tags[key] = value
        tags = sanitize_tags(raw_tags)

        record = ChangeRecord(id=entity_id, type=entity_type, lat=lat, lon=lon, tags=tags)

        if section == "delete":
            changes.deleted.append(record)
        elif section == "modify":
            if self.is_domain_tagged(tags):
                changes.modified.append(record)
            else:
                changes.unqualified_modified.append(record)
        elif self.is_domain_tagged(tags):
            changes.created.append(record)
