"""
Order — one trade's remote-synchronized state.
Uses Decimal for amounts and premiums, like every monetary value here.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING
import logging

from federation.errors import CoordinatorUnavailable, RequestRejected, UnknownCoordinator
from federation.models import MAKE_PATH, ORDER_PATH, OrderStatus, OrderType

if TYPE_CHECKING:
    from federation.federation import Federation
    from garage.slot import Slot

logger = logging.getLogger(__name__)

DECIMAL_FIELDS = {"amount", "min_amount", "max_amount", "premium", "bond_size"}
DATETIME_FIELDS = {"expires_at", "created_at"}
MAKE_FIELDS = (
    "type", "currency", "amount", "has_range", "min_amount", "max_amount",
    "payment_method", "is_explicit", "premium", "satoshis", "public_duration",
    "escrow_duration", "bond_size", "latitude", "longitude",
)


@dataclass
class Order:
    """
    Every field but the identity is optional: a placeholder only knows
    (id, short_alias), and a partial response only overwrites what it carries.
    """
    id: Optional[Any] = None
    short_alias: str = ""
    status: Optional[int] = None
    is_participant: Optional[bool] = None
    bad_request: Optional[str] = None
    status_message: Optional[str] = None
    type: Optional[OrderType] = None
    currency: Optional[int] = None
    amount: Optional[Decimal] = None
    has_range: Optional[bool] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    is_explicit: Optional[bool] = None
    premium: Optional[Decimal] = None
    satoshis: Optional[int] = None
    public_duration: Optional[int] = None
    escrow_duration: Optional[int] = None
    bond_size: Optional[Decimal] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_maker: Optional[bool] = None
    is_taker: Optional[bool] = None
    maker_nick: Optional[str] = None
    taker_nick: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[Any, str]:
        return (self.id, self.short_alias)

    @property
    def status_name(self) -> str:
        if self.status is None:
            return "UNKNOWN"
        try:
            return OrderStatus(self.status).name
        except ValueError:
            return str(self.status)

    def update(self, other: "Order"):
        """Field-wise overwrite with every field `other` actually carries."""
        for f in fields(self):
            value = getattr(other, f.name)
            if value is not None:
                setattr(self, f.name, value)

    @classmethod
    def from_response(cls, short_alias: str, data: Dict[str, Any], **defaults) -> "Order":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = dict(defaults)
        for name, value in data.items():
            if name not in known or value is None:
                continue
            kwargs[name] = _coerce(name, value)
        kwargs["short_alias"] = short_alias
        return cls(**kwargs)

    def make_payload(self) -> Dict[str, Any]:
        payload = {}
        for name in MAKE_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, OrderType):
                value = int(value)
            payload[name] = value
        return payload

    def _auth_headers(self, slot: "Slot") -> Dict[str, str]:
        robot = slot.get_robot(self.short_alias)
        if robot is None:
            raise UnknownCoordinator(self.short_alias)
        headers = robot.get_auth_headers()
        if headers is None:
            raise RequestRejected(self.short_alias, "Robot has no credentials")
        return headers

    async def fetch(self, federation: "Federation", slot: "Slot") -> "Order":
        """
        Fetch this order's remote state as a new Order instance.
        A bad_request answer is data, not an error.
        """
        coordinator = federation.resolve_coordinator(self.short_alias)
        headers = self._auth_headers(slot)
        data = await federation.api.get(
            coordinator.get_base_url(), ORDER_PATH,
            headers=headers, params={"order_id": self.id},
            short_alias=self.short_alias,
        )
        try:
            fetched = Order.from_response(self.short_alias, data, id=self.id)
        except (TypeError, ValueError) as e:
            raise CoordinatorUnavailable(self.short_alias, f"Unreadable order response: {e}") from e
        logger.debug(f"[ORDER] {self.short_alias}/{self.id}: {fetched.status_name}")
        return fetched

    async def make(self, federation: "Federation", slot: "Slot") -> "Order":
        """Create this order on its coordinator. Raises if it is refused."""
        coordinator = federation.resolve_coordinator(self.short_alias)
        headers = self._auth_headers(slot)
        payload = self.make_payload()
        logger.info(f"[ORDER] {self.short_alias}: Creating {payload}")

        data = await federation.api.post(
            coordinator.get_base_url(), MAKE_PATH, payload,
            headers=headers, short_alias=self.short_alias,
        )
        if "bad_request" in data:
            raise RequestRejected(self.short_alias, str(data["bad_request"]))

        try:
            created = Order.from_response(self.short_alias, data)
        except (TypeError, ValueError) as e:
            raise CoordinatorUnavailable(self.short_alias, f"Unreadable order response: {e}") from e
        self.update(created)
        if self.id is None:
            raise RequestRejected(self.short_alias, "Creation response carried no order id")
        logger.info(f"[ORDER] {self.short_alias}: Created order #{self.id}")
        return self


def _coerce(name: str, value: Any) -> Any:
    if name in DECIMAL_FIELDS:
        try:
            return Decimal(str(value))
        except InvalidOperation:
            logger.warning(f"[ORDER] Ignoring non-numeric {name}={value!r}")
            return None
    if name in DATETIME_FIELDS and isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    if name == "type":
        return OrderType(int(value))
    if name == "bad_request":
        return str(value)
    return value
