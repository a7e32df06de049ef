"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional

import pytest
from pydantic import BaseModel, Field

import config
from conditions import INIT_REASON, Condition, Conditions, Severity, unknown_condition
from engine import Engine
from memory import InMemoryClient
from request import Request
from resources import InstanceWithConditions, ObjectMeta, Resource
from result import Result
from steps import ConditionManager, Step

FINALIZER = "test.example.org/finalizer"


class WidgetStatus(BaseModel):
    conditions: Optional[Conditions] = None
    observed: Dict[str, int] = Field(default_factory=dict)


class Widget(Resource, InstanceWithConditions):
    """Minimal resource with conditions for engine tests."""

    kind = "Widget"

    spec: Dict[str, int] = Field(default_factory=dict)
    status: WidgetStatus = Field(default_factory=WidgetStatus)

    def get_conditions(self) -> Optional[Conditions]:
        return self.status.conditions

    def set_conditions(self, conditions: Conditions) -> None:
        self.status.conditions = conditions


class RecordingStep(Step):
    """Step that records its calls and returns preset results."""

    def __init__(
        self,
        name: str,
        calls: List[str],
        do_result: Optional[Result] = None,
        cleanup_result: Optional[Result] = None,
        post_result: Optional[Result] = None,
    ):
        self._name = name
        self.calls = calls
        self.do_result = do_result or Result.ok()
        self.cleanup_result = cleanup_result or Result.ok()
        self.post_result = post_result or Result.ok()
        self.setup_steps: List[Step] = []

    @property
    def name(self) -> str:
        return self._name

    def setup(self, steps, log):
        self.setup_steps = list(steps)
        self.calls.append(f"{self._name}.setup")

    async def do(self, request, log):
        self.calls.append(f"{self._name}.do")
        return self.do_result

    async def cleanup(self, request, log):
        self.calls.append(f"{self._name}.cleanup")
        return self.cleanup_result

    async def post(self, request, log):
        self.calls.append(f"{self._name}.post")
        return self.post_result


class ConditionStep(Step, ConditionManager):
    """Step managing one condition, marking it with a preset outcome."""

    def __init__(self, name: str, condition_type: str, healthy: bool = True, message: str = ""):
        self._name = name
        self.condition_type = condition_type
        self.healthy = healthy
        self.message = message

    @property
    def name(self) -> str:
        return self._name

    def get_managed_conditions(self) -> List[Condition]:
        return [unknown_condition(self.condition_type, INIT_REASON, f"{self.condition_type} init")]

    async def do(self, request, log):
        conditions = request.instance.get_conditions()
        if self.healthy:
            conditions.mark_true(self.condition_type, self.message or "done")
            return request.ok()
        err = RuntimeError(self.message or "failed")
        conditions.mark_false(self.condition_type, "Error", Severity.ERROR, str(err))
        return request.error(err)


@pytest.fixture(autouse=True)
def reset_global_config():
    """Give every test a fresh configuration singleton."""
    config.reset_config()
    yield
    config.reset_config()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def client():
    return InMemoryClient()


@pytest.fixture
def widget():
    return Widget(metadata=ObjectMeta(name="widget-1", namespace="test"))


@pytest.fixture
def make_request(client):
    def _make_request(key, **kwargs):
        kwargs.setdefault("finalizer", FINALIZER)
        kwargs.setdefault("default_requeue_timeout", 0.5)
        return Request(key=key, client=client, **kwargs)

    return _make_request


@pytest.fixture
def make_engine():
    def _make_engine(*steps, cleanup_steps=None):
        return Engine(steps, cleanup_steps=cleanup_steps)

    return _make_engine
