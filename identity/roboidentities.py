"""
Roboidentities — deterministic robot names and avatars from a hash id.
Results are cached per hash (and per size for avatars).
"""

from __future__ import annotations
import asyncio
from typing import Dict, Tuple
import logging

logger = logging.getLogger(__name__)

ADJECTIVES = [
    "Agile", "Bold", "Brave", "Calm", "Clever", "Cosmic", "Daring", "Eager",
    "Fancy", "Gentle", "Happy", "Humble", "Jolly", "Keen", "Lucky", "Mellow",
    "Nimble", "Noble", "Quiet", "Rapid", "Shiny", "Sneaky", "Witty", "Zesty",
]

NOUNS = [
    "Anchor", "Badger", "Beacon", "Comet", "Falcon", "Glacier", "Harbor",
    "Lantern", "Meadow", "Nebula", "Otter", "Pebble", "Pioneer", "Quasar",
    "Raven", "Sailor", "Spruce", "Thunder", "Tinker", "Voyager", "Walrus",
    "Willow", "Yeti", "Zephyr",
]

AVATAR_PIXELS = {"small": 80, "large": 256}
GRID = 5


class RoboidentitiesClient:
    """Local generator. Async so a remote or threaded backend can replace it."""

    def __init__(self):
        self._names: Dict[str, str] = {}
        self._avatars: Dict[Tuple[str, str], str] = {}

    async def generate_roboname(self, hash_id: str) -> str:
        if hash_id not in self._names:
            seed = bytes.fromhex(hash_id)
            adjective = ADJECTIVES[seed[0] % len(ADJECTIVES)]
            noun = NOUNS[seed[1] % len(NOUNS)]
            number = int.from_bytes(seed[2:4], "big") % 1000
            self._names[hash_id] = f"{adjective}{noun}{number}"
            logger.debug(f"[IDENT] Name for {hash_id[:8]}: {self._names[hash_id]}")
        await asyncio.sleep(0)
        return self._names[hash_id]

    async def generate_robohash(self, hash_id: str, size: str = "small") -> str:
        """SVG identicon. size is "small" or "large"."""
        key = (hash_id, size)
        if key not in self._avatars:
            self._avatars[key] = _identicon_svg(hash_id, AVATAR_PIXELS.get(size, AVATAR_PIXELS["small"]))
        await asyncio.sleep(0)
        return self._avatars[key]

    def cached_avatar(self, hash_id: str, size: str = "small"):
        return self._avatars.get((hash_id, size))


def _identicon_svg(hash_id: str, pixels: int) -> str:
    seed = bytes.fromhex(hash_id)
    color = f"#{seed[-3]:02x}{seed[-2]:02x}{seed[-1]:02x}"
    cell = pixels // GRID
    rects = []
    # Left half plus middle column, mirrored to the right
    for row in range(GRID):
        for col in range((GRID + 1) // 2):
            if seed[row * GRID + col] & 1:
                for c in {col, GRID - 1 - col}:
                    rects.append(
                        f'<rect x="{c * cell}" y="{row * cell}" '
                        f'width="{cell}" height="{cell}" fill="{color}"/>'
                    )
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{pixels}" height="{pixels}">'
        + "".join(rects)
        + "</svg>"
    )


roboidentities_client = RoboidentitiesClient()
