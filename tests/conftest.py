"""
Shared fixtures: a scripted coordinator API and a three-coordinator federation.
"""

import asyncio

import pytest

from config import CoordinatorConfig, FederationConfig
from federation.errors import CoordinatorUnavailable
from federation.federation import Federation
from federation.models import ORDER_PATH, ROBOT_PATH
from garage.slot import Slot
from identity.roboidentities import RoboidentitiesClient


class FakeApi:
    """
    Stands in for ApiClient. Answers are keyed by (short_alias, path) and may
    be a dict, an exception instance, or a callable taking the request kwargs.
    """

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.closed = False

    def respond(self, short_alias, path, answer):
        self.responses[(short_alias, path)] = answer

    async def _answer(self, method, short_alias, path, **kwargs):
        self.calls.append((method, short_alias, path, kwargs))
        await asyncio.sleep(0)
        answer = self.responses.get((short_alias, path))
        if answer is None:
            raise CoordinatorUnavailable(short_alias, f"no scripted answer for {path}")
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(**kwargs)
        return dict(answer)

    async def get(self, base_url, path, headers=None, params=None, short_alias=None):
        return await self._answer("GET", short_alias, path, headers=headers, params=params)

    async def post(self, base_url, path, body, headers=None, short_alias=None):
        return await self._answer("POST", short_alias, path, headers=headers, body=body)

    async def close(self):
        self.closed = True

    def robot_answer(self, short_alias, active_order_id=None, last_order_id=None, **extra):
        self.respond(short_alias, ROBOT_PATH, {
            "nickname": "RemoteName",
            "active_order_id": active_order_id,
            "last_order_id": last_order_id,
            **extra,
        })

    def order_answer(self, short_alias, answer):
        self.respond(short_alias, ORDER_PATH, answer)


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def federation(fake_api):
    config = FederationConfig(coordinators=[
        CoordinatorConfig("c1", "http://c1.example"),
        CoordinatorConfig("c2", "http://c2.example"),
        CoordinatorConfig("c3", "http://c3.example"),
    ])
    return Federation(config, api=fake_api)


class UpdateCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


@pytest.fixture
def updates():
    return UpdateCounter()


@pytest.fixture
def make_slot(updates):
    """Build a Slot. Call from inside an async test (needs a running loop)."""
    def _make(token="T1", short_aliases=("c1", "c2"), **robot_attributes):
        attributes = {"pub_key": "PUB", "enc_priv_key": "PRIV", **robot_attributes}
        return Slot(token, list(short_aliases), attributes, updates, identities=RoboidentitiesClient())
    return _make
