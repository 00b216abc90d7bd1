"""
Image field rules

Describes where embedded data-URI images live in stored documents and how
they are moved into a companion images document. Shared by the migration
and by the appearance write path.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Collection, Optional

from storekv.common.utils import is_data_uri

logger = logging.getLogger(__name__)

PLACEHOLDER = "__stored__"


@dataclass(frozen=True)
class ImageFieldRule:
    """One image-bearing field: its path in the document and its images key"""

    path: tuple[str, ...]
    key: str

    @property
    def label(self) -> str:
        return ".".join(self.path)

    def read(self, document: dict[str, Any]) -> Any:
        node: Any = document
        for part in self.path:
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return node

    def write(self, document: dict[str, Any], value: Any) -> None:
        node = document
        for part in self.path[:-1]:
            node = node[part]
        node[self.path[-1]] = value


APPEARANCE_RULES = (
    ImageFieldRule(("logo",), "logo"),
    ImageFieldRule(("banner", "image"), "bannerImage"),
    ImageFieldRule(("currency", "logo"), "currencyLogo"),
    ImageFieldRule(("seo", "favicon"), "favicon"),
)


def section_banner_rules(appearance: dict[str, Any]) -> list[ImageFieldRule]:
    """Rules for the per-section banners under sectionSettings"""
    sections = appearance.get("sectionSettings")
    if not isinstance(sections, dict):
        return []
    return [
        ImageFieldRule(("sectionSettings", name, "banner"), f"section_{name}_banner")
        for name in sections
    ]


def appearance_rules(appearance: dict[str, Any]) -> list[ImageFieldRule]:
    return [*APPEARANCE_RULES, *section_banner_rules(appearance)]


def embedded_fields(appearance: Any) -> list[str]:
    """Labels of appearance fields that still embed a payload"""
    if not isinstance(appearance, dict):
        return []
    return [
        rule.label
        for rule in appearance_rules(appearance)
        if is_data_uri(rule.read(appearance))
    ]


def extract_appearance_images(
    appearance: dict[str, Any],
    images: Optional[dict[str, Any]] = None,
) -> tuple[dict[str, Any], dict[str, Any], list[str]]:
    """
    Move embedded payloads out of an appearance document.

    The input documents are left untouched.

    Returns:
        (rewritten appearance, images document with payloads added, moved labels)
    """
    rewritten = copy.deepcopy(appearance)
    extracted = dict(images or {})
    moved: list[str] = []
    for rule in appearance_rules(rewritten):
        value = rule.read(rewritten)
        if is_data_uri(value):
            extracted[rule.key] = value
            rule.write(rewritten, PLACEHOLDER)
            moved.append(rule.label)
    return rewritten, extracted, moved


@dataclass(frozen=True)
class EntityCollection:
    """A stored array of records with one image field or an images array"""

    key: str
    images_key: str
    field: str
    multiple: bool = False


ENTITY_COLLECTIONS = (
    EntityCollection("cm_tasks", "cm_tasks_images", "image"),
    EntityCollection("cm_auctions", "cm_auctions_images", "image"),
    EntityCollection("cm_lotteries", "cm_lotteries_images", "image"),
    EntityCollection("cm_products", "cm_products_images", "images", multiple=True),
)


class _ImageSink:
    """Collects extracted payloads, refusing keys that are already taken"""

    def __init__(self, collection: EntityCollection, reserved: Collection[str]):
        self.collection = collection
        self.reserved = reserved
        self.images: dict[str, Any] = {}
        self.moved = 0

    def claim(self, image_key: str, value: str) -> bool:
        if image_key in self.images or image_key in self.reserved:
            logger.warning(
                f"Duplicate image key {image_key} in {self.collection.key}, leaving payload embedded"
            )
            return False
        self.images[image_key] = value
        self.moved += 1
        return True


def _extract_single(record: dict[str, Any], sink: _ImageSink) -> Optional[dict[str, Any]]:
    field = sink.collection.field
    value = record.get(field)
    if not is_data_uri(value) or not sink.claim(str(record["id"]), value):
        return None
    return {**record, field: PLACEHOLDER}


def _extract_multiple(record: dict[str, Any], sink: _ImageSink) -> Optional[dict[str, Any]]:
    field = sink.collection.field
    listed = record.get(field)
    legacy = record.get("image")
    if isinstance(listed, list) and listed:
        source = listed
    elif legacy:
        source = [legacy]
    else:
        return None

    changed = False
    rewritten_list = []
    for idx, value in enumerate(source):
        image_key = f"{record['id']}_{idx}"
        if is_data_uri(value) and sink.claim(image_key, value):
            rewritten_list.append(f"{PLACEHOLDER}:{image_key}")
            changed = True
        else:
            rewritten_list.append(value)
    if not changed:
        return None

    rewritten = {**record, field: rewritten_list}
    if source is not listed:
        # The legacy field held the payload itself
        rewritten["image"] = rewritten_list[0]
    return rewritten


def extract_entity_images(
    records: list[Any],
    collection: EntityCollection,
    reserved: Collection[str] = (),
) -> tuple[list[Any], dict[str, Any], int]:
    """
    Move embedded payloads out of an entity collection.

    Records without an id pass through unchanged. Images are keyed by id,
    or by `<id>_<index>` for collections holding an images array. A payload
    whose key is already taken (a repeated id, or a key in `reserved`) stays
    embedded so no stored image is ever overwritten.

    Returns:
        (rewritten records, extracted images, number of extracted entries)
    """
    extractor = _extract_multiple if collection.multiple else _extract_single
    sink = _ImageSink(collection, reserved)
    rewritten_records = []
    for record in records:
        if not isinstance(record, dict) or record.get("id") in (None, ""):
            rewritten_records.append(record)
            continue
        rewritten = extractor(record, sink)
        rewritten_records.append(record if rewritten is None else rewritten)
    return rewritten_records, sink.images, sink.moved
