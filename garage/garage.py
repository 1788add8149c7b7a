"""
Garage — the Slots a user holds, one per token.
Tracks the selected slot and persists every slot whenever it changes.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
import logging

from garage.slot import Slot
from identity.roboidentities import RoboidentitiesClient, roboidentities_client
from storage.database import Database, StoredSlot

if TYPE_CHECKING:
    from federation.federation import Federation

logger = logging.getLogger(__name__)

CURRENT_TOKEN_KEY = "current_token"


class Garage:

    def __init__(
        self,
        db: Optional[Database] = None,
        on_garage_update: Optional[Callable[[], None]] = None,
        identities: RoboidentitiesClient = roboidentities_client,
    ):
        self.db = db
        self.on_garage_update = on_garage_update or (lambda: None)
        self.identities = identities
        self.slots: Dict[str, Slot] = {}
        self.current_token: Optional[str] = None
        self._loading = False

    def load(self):
        """Rebuild slots from storage. Order state comes back on the next refresh."""
        if self.db is None:
            return
        self._loading = True
        try:
            for stored in self.db.get_all_slots():
                self.slots[stored.token] = self._build_slot(
                    stored.token,
                    stored.short_aliases,
                    {"pub_key": stored.pub_key, "enc_priv_key": stored.enc_priv_key},
                )
        finally:
            self._loading = False

        current = self.db.get_state(CURRENT_TOKEN_KEY)
        if current in self.slots:
            self.current_token = current
        elif self.slots:
            self.current_token = next(iter(self.slots))
        logger.info(f"[GARAGE] Loaded {len(self.slots)} slots")
        self.on_garage_update()

    def _build_slot(self, token: str, short_aliases: List[str], robot_attributes: Dict[str, Any]) -> Slot:
        slot: Optional[Slot] = None

        def on_slot_update():
            # Fires during construction too, before the slot is assigned
            if slot is not None:
                self._on_slot_update(slot)

        slot = Slot(token, short_aliases, robot_attributes, on_slot_update, identities=self.identities)
        return slot

    def _on_slot_update(self, slot: Slot):
        if slot.token not in self.slots:
            return
        if not self._loading:
            self.save_slot(slot)
        self.on_garage_update()

    def save_slot(self, slot: Slot):
        if self.db is None or not slot.token:
            return
        robot = slot.get_robot()
        self.db.save_slot(StoredSlot(
            token=slot.token,
            short_aliases=list(slot.robots),
            pub_key=robot.pub_key if robot else None,
            enc_priv_key=robot.enc_priv_key if robot else None,
            nickname=slot.nickname,
        ))

    # ==================== Slots ====================

    def create_slot(
        self,
        federation: "Federation",
        token: str,
        short_aliases: Optional[List[str]] = None,
        robot_attributes: Optional[Dict[str, Any]] = None,
    ) -> Slot:
        """Create (or select, if it exists) the slot for a token."""
        if token in self.slots:
            self.set_current(token)
            return self.slots[token]

        aliases = short_aliases if short_aliases is not None else federation.sorted_coordinators
        slot = self._build_slot(token, aliases, robot_attributes or {})
        self.slots[token] = slot
        self.save_slot(slot)
        self.set_current(token)
        logger.info(f"[GARAGE] New slot {slot.hash_id[:8]} on {len(aliases)} coordinators")
        return slot

    def get_slot(self, token: Optional[str] = None) -> Optional[Slot]:
        return self.slots.get(token or self.current_token or "")

    def set_current(self, token: str):
        if token not in self.slots:
            raise KeyError("No slot for token")
        self.current_token = token
        if self.db is not None:
            self.db.set_state(CURRENT_TOKEN_KEY, token)
        self.on_garage_update()

    def delete_slot(self, token: Optional[str] = None):
        token = token or self.current_token
        if token is None or token not in self.slots:
            return
        del self.slots[token]
        if self.db is not None:
            self.db.delete_slot(token)
        if self.current_token == token:
            self.current_token = next(iter(self.slots), None)
            if self.db is not None:
                self.db.set_state(CURRENT_TOKEN_KEY, self.current_token)
        self.on_garage_update()

    # ==================== Federation-wide ====================

    async def fetch_robots(self, federation: "Federation"):
        for slot in list(self.slots.values()):
            await slot.fetch_robot(federation)

    async def fetch_active_order(self, federation: "Federation"):
        """Refresh the current slot's active order."""
        slot = self.get_slot()
        if slot is not None:
            await slot.fetch_active_order(federation)

    async def sync_coordinator(self, federation: "Federation", short_alias: str):
        """A coordinator joined the federation: every slot joins it too."""
        for slot in list(self.slots.values()):
            await slot.sync_coordinator(federation, short_alias)
            self.save_slot(slot)
