import logging
from typing import Optional, Sequence

from .tag_types import RawDetection

_logger = logging.getLogger("tag_pipeline.duplicates")


def remove_duplicates(
    detections: Sequence[RawDetection],
    logger: Optional[logging.Logger] = None,
) -> list[RawDetection]:
    """
    Drop every detection whose tag id occurs more than once in the frame.

    A scene holds each physical tag at most once, so a repeated id is either a
    false decode or a duplicated print; there is no way to tell which copy is
    real, so all copies go. One warning is logged per pruned id.

    Returns a new list sorted by id (stable, so equal ids keep their input
    order); ``detections`` itself is left untouched.
    """
    log = logger or _logger
    ordered = sorted(detections, key=lambda d: d.tag_id)

    kept: list[RawDetection] = []
    i = 0
    n = len(ordered)
    while i < n:
        j = i + 1
        while j < n and ordered[j].tag_id == ordered[i].tag_id:
            j += 1
        if j - i == 1:
            kept.append(ordered[i])
        else:
            log.warning(
                "Pruning tag ID %d because it appears more than once in the image.",
                ordered[i].tag_id,
            )
        i = j
    return kept
