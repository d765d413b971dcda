import logging
from datetime import datetime, timedelta
from typing import List, Optional

from .. import config
from ..models import ImageFile

class BackfillMatcher:
    """
    Chooses replacement images for a listing that has too few.

    Preferred: unclaimed files whose embedded timestamp lies within `window`
    of the listing's creation time, closest first.
    Fallback ("nearest"): closest timestamped files regardless of window,
    then the remaining pool in listing order.
    Fallback ("sequential"): the remaining pool in listing order.
    Fallback ("none"): preferred policy only.

    The fallback fills whatever the window left short, so it also runs after
    a partial proximate match, not only when nothing was in the window.

    Ties keep candidate (directory listing) order.
    """

    def __init__(self, window: timedelta = config.MATCH_WINDOW, fallback: str = config.DEFAULT_FALLBACK):
        if fallback not in config.FALLBACK_POLICIES:
            raise ValueError(f"Unknown fallback policy: {fallback!r}")
        self.window = window
        self.fallback = fallback

    def select(self,
               created_at: Optional[datetime],
               candidates: List[ImageFile],
               count: int) -> List[ImageFile]:
        """
        Args:
            candidates: Unclaimed, usable files in listing order.
            count: How many files the listing still needs.
        """
        if count <= 0 or not candidates:
            return []

        chosen: List[ImageFile] = []
        taken = set()

        def take(image: ImageFile):
            chosen.append(image)
            taken.add(image.filename)

        if created_at is not None:
            # sorted() is stable, so equal distances keep listing order
            by_distance = sorted(
                (f for f in candidates if f.timestamp is not None),
                key=lambda f: abs(f.timestamp - created_at),
            )

            for image in by_distance:
                if len(chosen) >= count:
                    break
                if abs(image.timestamp - created_at) <= self.window:
                    take(image)

            if len(chosen) < count and self.fallback == "nearest":
                for image in by_distance:
                    if len(chosen) >= count:
                        break
                    if image.filename not in taken:
                        logging.debug(f"Fallback (nearest): {image.filename} is {abs(image.timestamp - created_at)} away")
                        take(image)

        if len(chosen) < count and self.fallback != "none":
            for image in candidates:
                if len(chosen) >= count:
                    break
                if image.filename not in taken:
                    take(image)

        return chosen
