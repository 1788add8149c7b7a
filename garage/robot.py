"""
Robot — one pseudonymous identity bound to one coordinator.
Holds credentials and the coordinator's last-known order ids.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

from federation.errors import CoordinatorUnavailable, RequestRejected
from federation.models import ROBOT_PATH

if TYPE_CHECKING:
    from federation.federation import Federation

logger = logging.getLogger(__name__)


@dataclass
class Robot:
    short_alias: str
    token: Optional[str] = None
    token_sha256: Optional[str] = None
    pub_key: Optional[str] = None
    enc_priv_key: Optional[str] = None
    has_enough_entropy: bool = False
    bits_entropy: Optional[float] = None
    shannon_entropy: Optional[float] = None
    nickname: Optional[str] = None
    last_order_id: Optional[Any] = None
    active_order_id: Optional[Any] = None
    earned_rewards: int = 0
    stealth_invoices: bool = True
    tg_enabled: bool = False
    found: bool = False
    last_login: Optional[datetime] = None
    loading: bool = False

    def get_auth_headers(self) -> Optional[Dict[str, str]]:
        if not self.token_sha256:
            return None
        authorization = f"Token {self.token_sha256}"
        if self.pub_key and self.enc_priv_key:
            # Armored keys are multi-line; header values are not
            pub = self.pub_key.replace("\n", "\\")
            priv = self.enc_priv_key.replace("\n", "\\")
            authorization += f" | Public {pub} | Private {priv}"
        return {"Authorization": authorization}

    def clone_for(self, short_alias: str) -> "Robot":
        """New Robot for another coordinator carrying only the credential fields."""
        return Robot(
            short_alias=short_alias,
            token=self.token,
            token_sha256=self.token_sha256,
            pub_key=self.pub_key,
            enc_priv_key=self.enc_priv_key,
            has_enough_entropy=self.has_enough_entropy,
            bits_entropy=self.bits_entropy,
            shannon_entropy=self.shannon_entropy,
        )

    async def fetch(self, federation: "Federation") -> "Robot":
        """
        Refresh this robot from its coordinator and return it.
        Raises CoordinatorError on failure; fields are only written after a
        complete, accepted response.
        """
        coordinator = federation.resolve_coordinator(self.short_alias)
        headers = self.get_auth_headers()
        if headers is None:
            logger.warning(f"[ROBOT] {self.short_alias}: No credentials, skipping fetch")
            return self

        self.loading = True
        try:
            data = await federation.api.get(
                coordinator.get_base_url(), ROBOT_PATH,
                headers=headers, short_alias=self.short_alias,
            )
        finally:
            self.loading = False

        if "bad_request" in data:
            raise RequestRejected(self.short_alias, str(data["bad_request"]))

        try:
            self._apply(data)
        except (TypeError, ValueError) as e:
            raise CoordinatorUnavailable(self.short_alias, f"Unreadable robot response: {e}") from e
        logger.debug(
            f"[ROBOT] {self.short_alias}: {self.nickname} "
            f"active={self.active_order_id} last={self.last_order_id}"
        )
        return self

    def _apply(self, data: Dict[str, Any]):
        last_login = self.last_login
        if data.get("last_login"):
            last_login = datetime.fromisoformat(str(data["last_login"]).replace("Z", "+00:00"))

        self.last_login = last_login
        self.nickname = data.get("nickname", self.nickname)
        self.active_order_id = data.get("active_order_id")
        self.last_order_id = data.get("last_order_id")
        self.earned_rewards = data.get("earned_rewards") or 0
        self.stealth_invoices = data.get("wants_stealth", self.stealth_invoices)
        self.tg_enabled = data.get("tg_enabled", self.tg_enabled)
        self.found = bool(data.get("found", self.found))
        self.pub_key = data.get("public_key") or self.pub_key
        self.enc_priv_key = data.get("encrypted_private_key") or self.enc_priv_key
