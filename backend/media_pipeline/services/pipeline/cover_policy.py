# backend/media_pipeline/services/pipeline/cover_policy.py
from typing import Optional, Sequence

from ...constants import COVER_MIN_WIDTH
from ...models.asset_models import Rendition


def select_cover_candidate(
    renditions: Sequence[Rendition], min_width: int = COVER_MIN_WIDTH
) -> Optional[Rendition]:
    """
    Pick the rendition used as an asset's cover image.

    The first rendition at least min_width wide wins, in the order given.
    When none is wide enough the widest one is used.
    """
    if not renditions:
        return None
    for rendition in renditions:
        if (rendition.width or 0) >= min_width:
            return rendition
    return max(renditions, key=lambda r: r.width or 0)
