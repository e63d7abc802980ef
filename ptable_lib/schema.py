# --- ptable_lib/schema.py ---
"""
ptable_lib/schema.py: JSON serialization of documents and patch catalogs.

Dataclasses are dumped with `asdict`; orientations serialize as their names.
"""
import glob
import json
import logging
import os
from dataclasses import asdict
from typing import Any, Dict, List, Union

from .geometry import BoundingBox, Orientation
from .models import (
    Character,
    Document,
    DocumentChanges,
    DocumentId,
    DocumentsChanges,
    Page,
    PageChanges,
    Patch,
    PreventBinding,
    TableRow,
    TextBlock,
    TextSegment,
)

log_schema = logging.getLogger("ptable.schema")


def _box(data: Dict) -> BoundingBox:
    return BoundingBox(**data) if data else BoundingBox()


def _character(data: Dict) -> Character:
    data = dict(data)
    data["orientation"] = Orientation(data.get("orientation", Orientation.EAST))
    data["bounding_box"] = _box(data.get("bounding_box"))
    return Character(**data)


def _segment(data: Dict) -> TextSegment:
    data = dict(data)
    data["orientation"] = Orientation(data.get("orientation", Orientation.SOUTH))
    data["bounding_box"] = _box(data.get("bounding_box"))
    return TextSegment(**data)


def _block(data: Dict) -> TextBlock:
    data = dict(data)
    data["orientation"] = Orientation(data.get("orientation", Orientation.SOUTH))
    data["bounding_box"] = _box(data.get("bounding_box"))
    return TextBlock(**data)


def _row(data: Dict) -> TableRow:
    return TableRow(
        blocks=[_block(b) for b in data.get("blocks", [])],
        bounding_box=_box(data.get("bounding_box")),
    )


def _page(data: Dict) -> Page:
    return Page(
        number=data.get("number", 0),
        width=data.get("width", 0.0),
        height=data.get("height", 0.0),
        characters=[_character(c) for c in data.get("characters", [])],
        segments=[_segment(s) for s in data.get("segments", [])],
        blocks=[_block(b) for b in data.get("blocks", [])],
        rows=[_row(r) for r in data.get("rows", [])],
    )


def _as_plain(value: Any) -> Any:
    if isinstance(value, Orientation):
        return value.value
    if isinstance(value, dict):
        return {k: _as_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_as_plain(v) for v in value]
    return value


def document_to_dict(document: Document) -> Dict:
    return _as_plain(asdict(document))


def document_from_dict(data: Dict) -> Document:
    return Document(
        document_id=DocumentId(**data.get("document_id", {})),
        pages=[_page(p) for p in data.get("pages", [])],
    )


def changes_to_dict(changes: DocumentChanges) -> Dict:
    return _as_plain(asdict(changes))


def changes_from_dict(data: Dict) -> DocumentChanges:
    """Builds a DocumentChanges, accepting pages with no patches or bindings."""
    pages = []
    for page_data in data.get("pages", []):
        pages.append(
            PageChanges(
                page_number=page_data["page_number"],
                patches=[Patch(**p) for p in page_data.get("patches", [])],
                prevent_bindings=[
                    PreventBinding(**b) for b in page_data.get("prevent_bindings", [])
                ],
            )
        )
    return DocumentChanges(document_id=DocumentId(**data.get("document_id", {})), pages=pages)


def save_json(obj: Union[Document, DocumentChanges], output_path: str) -> None:
    """
    Serializes a Document or a DocumentChanges to a JSON file.

    Args:
        obj: The object to serialize.
        output_path: The path to the output .json file.
    """
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(_as_plain(asdict(obj)), f, indent=2, ensure_ascii=False)
    log_schema.debug("Saved %s to %s", type(obj).__name__, output_path)


def _load(input_path: str) -> Dict:
    with open(input_path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_document(input_path: str) -> Document:
    return document_from_dict(_load(input_path))


def load_changes(input_path: str) -> DocumentChanges:
    return changes_from_dict(_load(input_path))


def load_configurations(directory: str) -> DocumentsChanges:
    """Loads every *.json patch catalog of a directory, sorted by file name."""
    documents: List[DocumentChanges] = []
    for path in sorted(glob.glob(os.path.join(directory, "*.json"))):
        changes = load_changes(path)
        log_schema.debug("Loaded %d patches from %s", changes.patch_count, path)
        documents.append(changes)
    log_schema.info("Loaded %d patch catalogs from %s", len(documents), directory)
    return DocumentsChanges(documents=documents)
