"""
Slot — one session's identities and order references.

Owns one Robot per coordinator (all derived from the same token) and
reconciles asynchronous robot and order responses into two references:
the active order and the last (historical) order.

Invariant: active_order and last_order never share an (id, coordinator) pair.
"""

from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict, Iterable, Optional, Set, TYPE_CHECKING
import logging

from federation.errors import CoordinatorError
from federation.models import EXPIRED_MARKER, OrderStatus
from garage.order import Order
from garage.robot import Robot
from identity.derivation import auth_digest, derive_hash, validate_token_entropy
from identity.roboidentities import RoboidentitiesClient, roboidentities_client

if TYPE_CHECKING:
    from federation.federation import Federation

logger = logging.getLogger(__name__)

AVATAR_SIZES = ("small", "large")


class Slot:
    """
    Session root. Every state change is followed by a call to on_slot_update;
    subscribers re-read the whole slot.
    Must be constructed inside a running event loop (identity derivation runs
    as background tasks).
    """

    def __init__(
        self,
        token: str,
        short_aliases: Iterable[str],
        robot_attributes: Dict[str, Any],
        on_slot_update: Callable[[], None],
        identities: RoboidentitiesClient = roboidentities_client,
    ):
        self.on_slot_update = on_slot_update
        self.token: Optional[str] = token
        self.hash_id: Optional[str] = derive_hash(token)
        self.nickname: Optional[str] = None
        self.robots: Dict[str, Robot] = {}
        self.active_order: Optional[Order] = None
        self.last_order: Optional[Order] = None
        self.copied_token = False
        self._tasks: Set[asyncio.Task] = set()

        self._spawn(self._derive_nickname(identities))
        for size in AVATAR_SIZES:
            self._spawn(identities.generate_robohash(self.hash_id, size))

        entropy = validate_token_entropy(token)
        token_sha256 = auth_digest(token)

        for short_alias in short_aliases:
            robot = Robot(
                **{
                    **robot_attributes,
                    "short_alias": short_alias,
                    "token": token,
                    "token_sha256": token_sha256,
                    "has_enough_entropy": entropy.has_enough_entropy,
                    "bits_entropy": entropy.bits_entropy,
                    "shannon_entropy": entropy.shannon_entropy,
                }
            )
            self.robots[short_alias] = robot
            self.update_slot_from_robot(robot)

        logger.info(
            f"[SLOT] {self.hash_id[:8]}: {len(self.robots)} robots, "
            f"entropy {entropy.bits_entropy:.0f} bits"
        )
        self.on_slot_update()

    # ==================== Background identity ====================

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"[SLOT] Identity derivation failed: {task.exception()!r}")

    async def _derive_nickname(self, identities: RoboidentitiesClient):
        self.nickname = await identities.generate_roboname(self.hash_id)
        self.on_slot_update()

    async def wait_identity(self):
        """Wait for pending nickname/avatar derivation."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def set_copied_token(self, copied: bool):
        self.copied_token = copied

    # ==================== Robots ====================

    def get_robot(self, short_alias: Optional[str] = None) -> Optional[Robot]:
        """Resolve an identity, preferring the one engaged in a trade."""
        if short_alias:
            return self.robots.get(short_alias)
        if self.active_order is not None and self.active_order.id is not None:
            return self.robots.get(self.active_order.short_alias)
        if (
            self.last_order is not None
            and self.last_order.id is not None
            and self.last_order.short_alias in self.robots
        ):
            return self.robots[self.last_order.short_alias]
        for robot in self.robots.values():
            return robot
        return None

    async def fetch_robot(self, federation: "Federation"):
        """
        Refresh every robot concurrently. Each result is reconciled as soon as
        it arrives; a failed refresh is logged and changes nothing.
        """
        await asyncio.gather(
            *(self._refresh_robot(federation, robot) for robot in list(self.robots.values()))
        )

    async def _refresh_robot(self, federation: "Federation", robot: Robot) -> bool:
        try:
            fetched = await robot.fetch(federation)
        except CoordinatorError as e:
            logger.warning(f"[SLOT] Robot refresh failed: {e}")
            return False
        self.update_slot_from_robot(fetched)
        return True

    def update_slot_from_robot(self, robot: Optional[Robot]):
        if robot is not None:
            # Active wins when a coordinator reports one id as both
            if (
                robot.last_order_id is not None
                and robot.last_order_id != robot.active_order_id
                and not _same(self.last_order, robot.last_order_id, robot.short_alias)
            ):
                if _same(self.active_order, robot.last_order_id, robot.short_alias):
                    logger.info(f"[SLOT] Order {robot.short_alias}/{robot.last_order_id} is no longer active")
                    self.last_order = self.active_order
                    self.active_order = None
                else:
                    self.last_order = Order(id=robot.last_order_id, short_alias=robot.short_alias)

            if robot.active_order_id is not None and not _same(
                self.active_order, robot.active_order_id, robot.short_alias
            ):
                self.active_order = Order(id=robot.active_order_id, short_alias=robot.short_alias)
                if _same(self.last_order, robot.active_order_id, robot.short_alias):
                    self.last_order = None

        self.on_slot_update()

    # ==================== Orders ====================

    async def fetch_active_order(self, federation: "Federation"):
        """Refresh the active order. Failures propagate with state untouched."""
        if self.active_order is None:
            return
        fetched = await self.active_order.fetch(federation, self)
        self.update_slot_from_order(fetched)

    async def make_order(self, federation: "Federation", attributes: Dict[str, Any]) -> Order:
        order = Order(**attributes)
        await order.make(federation, self)

        self.last_order = self.active_order
        self.active_order = order
        self.on_slot_update()
        return self.active_order

    def update_slot_from_order(self, new_order: Optional[Order]):
        if new_order is None:
            return

        # Some coordinator failure responses drop the status field
        if new_order.bad_request and EXPIRED_MARKER in new_order.bad_request:
            new_order.status = OrderStatus.EXPIRED

        if self.active_order is not None and self.active_order.key == new_order.key:
            self.active_order.update(new_order)
            if self.active_order.bad_request:
                logger.info(
                    f"[SLOT] Order {new_order.short_alias}/{new_order.id} closed: "
                    f"{self.active_order.bad_request}"
                )
                self.last_order = self.active_order
                self.active_order = None
            self.on_slot_update()
        elif new_order.is_participant and not _same(
            self.last_order, new_order.id, new_order.short_alias
        ):
            self.active_order = new_order
            self.on_slot_update()

    # ==================== Coordinators ====================

    async def sync_coordinator(self, federation: "Federation", short_alias: str) -> Optional[Robot]:
        """
        Join a coordinator with the same credentials as the default robot.
        No-op without a default robot holding a token, or if already joined.
        """
        if short_alias in self.robots:
            return self.robots[short_alias]
        default_robot = self.get_robot()
        if default_robot is None or not default_robot.token:
            return None

        robot = default_robot.clone_for(short_alias)
        self.robots[short_alias] = robot
        logger.info(f"[SLOT] {self.hash_id[:8]}: Joined coordinator {short_alias}")
        if not await self._refresh_robot(federation, robot):
            # Joining changed the robot set even though the refresh failed
            self.update_slot_from_robot(robot)
        return robot

    def get_status_summary(self) -> str:
        lines = [f"═══ {self.nickname or self.hash_id[:8]} ═══"]
        for short_alias, robot in self.robots.items():
            lines.append(
                f"{short_alias}: active={robot.active_order_id} "
                f"last={robot.last_order_id} rewards={robot.earned_rewards}"
            )
        for label, order in (("ACTIVE", self.active_order), ("LAST", self.last_order)):
            if order is not None:
                lines.append(f"{label}: {order.short_alias}/{order.id} [{order.status_name}]")
        return "\n".join(lines)


def _same(order: Optional[Order], order_id: Any, short_alias: str) -> bool:
    return order is not None and order.id == order_id and order.short_alias == short_alias
