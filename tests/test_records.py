"""
Robot and Order records against a scripted coordinator.
"""

from decimal import Decimal

import pytest

from federation.errors import CoordinatorUnavailable, RequestRejected, UnknownCoordinator
from federation.models import MAKE_PATH, ROBOT_PATH, OrderStatus, OrderType
from garage.order import Order
from garage.robot import Robot


def make_robot(short_alias="c1", **kwargs):
    defaults = dict(token="T1", token_sha256="digest", pub_key="-----PUB\nKEY", enc_priv_key="-----PRIV\nKEY")
    defaults.update(kwargs)
    return Robot(short_alias=short_alias, **defaults)


class TestRobot:

    def test_auth_headers_escape_newlines(self):
        headers = make_robot().get_auth_headers()
        assert headers == {
            "Authorization": "Token digest | Public -----PUB\\KEY | Private -----PRIV\\KEY"
        }

    def test_auth_headers_token_only(self):
        robot = Robot(short_alias="c1", token_sha256="digest")
        assert robot.get_auth_headers() == {"Authorization": "Token digest"}
        assert Robot(short_alias="c1").get_auth_headers() is None

    def test_clone_for_copies_credentials_only(self):
        robot = make_robot(
            has_enough_entropy=True, bits_entropy=200.0, shannon_entropy=5.0,
            active_order_id=3, last_order_id=2, earned_rewards=50, nickname="Me",
        )
        clone = robot.clone_for("c2")
        assert clone.short_alias == "c2"
        assert (clone.token, clone.token_sha256, clone.pub_key, clone.enc_priv_key) == (
            robot.token, robot.token_sha256, robot.pub_key, robot.enc_priv_key,
        )
        assert clone.bits_entropy == 200.0 and clone.has_enough_entropy
        assert clone.active_order_id is None
        assert clone.last_order_id is None
        assert clone.earned_rewards == 0
        assert clone.nickname is None

    @pytest.mark.asyncio
    async def test_fetch_applies_response(self, federation, fake_api):
        fake_api.robot_answer(
            "c1", active_order_id=10, last_order_id=9,
            earned_rewards=21, wants_stealth=False, found=True,
            last_login="2024-01-02T03:04:05Z",
        )
        robot = make_robot()

        result = await robot.fetch(federation)

        assert result is robot
        assert robot.active_order_id == 10
        assert robot.last_order_id == 9
        assert robot.earned_rewards == 21
        assert robot.stealth_invoices is False
        assert robot.found is True
        assert robot.last_login.year == 2024
        assert robot.loading is False
        assert fake_api.calls[0][3]["headers"]["Authorization"].startswith("Token digest")

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_robot_untouched(self, federation, fake_api):
        robot = make_robot(active_order_id=4)
        fake_api.respond("c1", ROBOT_PATH, CoordinatorUnavailable("c1", "timeout"))

        with pytest.raises(CoordinatorUnavailable):
            await robot.fetch(federation)

        assert robot.active_order_id == 4
        assert robot.loading is False

    @pytest.mark.asyncio
    async def test_fetch_rejected(self, federation, fake_api):
        robot = make_robot(active_order_id=4)
        fake_api.respond("c1", ROBOT_PATH, {"bad_request": "Invalid token"})

        with pytest.raises(RequestRejected) as exc:
            await robot.fetch(federation)

        assert exc.value.reason == "Invalid token"
        assert robot.active_order_id == 4

    @pytest.mark.asyncio
    async def test_fetch_unknown_coordinator(self, federation):
        with pytest.raises(UnknownCoordinator):
            await make_robot("nowhere").fetch(federation)

    @pytest.mark.asyncio
    async def test_fetch_without_credentials_is_skipped(self, federation, fake_api):
        robot = Robot(short_alias="c1")
        assert await robot.fetch(federation) is robot
        assert fake_api.calls == []


class TestOrder:

    def test_update_overwrites_only_present_fields(self):
        order = Order(id=1, short_alias="c1", status=OrderStatus.PUBLIC, currency=1, maker_nick="A")
        order.update(Order(id=1, short_alias="c1", status=OrderStatus.PAUSED, taker_nick="B"))
        assert order.status == OrderStatus.PAUSED
        assert order.currency == 1
        assert order.maker_nick == "A"
        assert order.taker_nick == "B"

    def test_from_response_coerces_fields(self):
        order = Order.from_response("c1", {
            "id": 5,
            "status": 1,
            "type": 1,
            "amount": "150.50",
            "premium": "2.5",
            "expires_at": "2024-05-01T12:00:00Z",
            "unknown_field": "ignored",
            "taker_nick": None,
        })
        assert order.key == (5, "c1")
        assert order.type == OrderType.SELL
        assert order.amount == Decimal("150.50")
        assert order.premium == Decimal("2.5")
        assert order.expires_at.hour == 12
        assert order.taker_nick is None
        assert order.status_name == "PUBLIC"

    def test_status_name(self):
        assert Order().status_name == "UNKNOWN"
        assert Order(status=99).status_name == "99"

    def test_make_payload(self):
        order = Order(short_alias="c1", type=OrderType.BUY, currency=2, amount=Decimal("100"), premium=Decimal("1.5"))
        assert order.make_payload() == {"type": 0, "currency": 2, "amount": "100", "premium": "1.5"}

    @pytest.mark.asyncio
    async def test_fetch_returns_new_instance(self, federation, fake_api, make_slot):
        slot = make_slot("T1", ["c1"])
        fake_api.order_answer("c1", {"id": 3, "status": 3, "is_participant": True})
        order = Order(id=3, short_alias="c1")

        fetched = await order.fetch(federation, slot)

        assert fetched is not order
        assert fetched.status == OrderStatus.WAITING_FOR_TAKER_BOND
        assert order.status is None

    @pytest.mark.asyncio
    async def test_fetch_requires_robot_for_coordinator(self, federation, fake_api, make_slot):
        slot = make_slot("T1", ["c1"])
        with pytest.raises(UnknownCoordinator):
            await Order(id=3, short_alias="c2").fetch(federation, slot)

    @pytest.mark.asyncio
    async def test_make_posts_payload(self, federation, fake_api, make_slot):
        slot = make_slot("T1", ["c1"])
        fake_api.respond("c1", MAKE_PATH, {"id": 77, "status": 0, "is_maker": True})
        order = Order(short_alias="c1", type=OrderType.SELL, currency=1, amount=Decimal("20"))

        result = await order.make(federation, slot)

        assert result is order
        assert order.id == 77
        assert order.is_maker is True
        method, alias, path, kwargs = fake_api.calls[-1]
        assert (method, alias, path) == ("POST", "c1", MAKE_PATH)
        assert kwargs["body"] == {"type": 1, "currency": 1, "amount": "20"}

    @pytest.mark.asyncio
    async def test_make_without_id_is_rejected(self, federation, fake_api, make_slot):
        slot = make_slot("T1", ["c1"])
        fake_api.respond("c1", MAKE_PATH, {"status": 0})
        with pytest.raises(RequestRejected):
            await Order(short_alias="c1", type=OrderType.BUY).make(federation, slot)

    @pytest.mark.asyncio
    async def test_make_with_unreadable_response(self, federation, fake_api, make_slot):
        slot = make_slot("T1", ["c1"])
        fake_api.respond("c1", MAKE_PATH, {"id": 3, "type": 5})
        order = Order(short_alias="c1", type=OrderType.BUY)
        with pytest.raises(CoordinatorUnavailable):
            await order.make(federation, slot)
        assert order.id is None
