"""
Bounding box helpers.

Boxes are (left, top, right, bottom) tuples with exclusive right and bottom.
"""
from typing import Optional

BBox = tuple[int, int, int, int]

EMPTY_BBOX: BBox = (0, 0, 0, 0)


def is_empty(bbox: BBox) -> bool:
    """Return True if the bounding box covers no pixel."""
    return bbox[0] >= bbox[2] or bbox[1] >= bbox[3]


def intersect(a: BBox, b: BBox) -> BBox:
    """Calculate intersection of two bounding boxes."""
    inter = (max(a[0], b[0]), max(a[1], b[1]), min(a[2], b[2]), min(a[3], b[3]))
    if is_empty(inter):
        return EMPTY_BBOX
    return inter


def union(a: Optional[BBox], b: Optional[BBox]) -> BBox:
    """Smallest bounding box covering both boxes. Empty boxes are ignored."""
    boxes = [x for x in (a, b) if x is not None and not is_empty(x)]
    if not boxes:
        return EMPTY_BBOX
    return (
        min(x[0] for x in boxes),
        min(x[1] for x in boxes),
        max(x[2] for x in boxes),
        max(x[3] for x in boxes),
    )
