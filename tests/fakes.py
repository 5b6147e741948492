import asyncio

from cascade_bot.domain import (
    AuthError,
    Credential,
    EntitySpec,
    FetchError,
    FetchResult,
    FilterExpression,
    Record,
    TokenResult,
)

PARENT_ENTITY = EntitySpec(entity_set="countries")
CHILD_ENTITY = EntitySpec(entity_set="cities", parent_field="parentRef")
FILTER_FIELD = "parentRef"


def make_parent(idx: str, name: str) -> Record:
    return Record(id=idx, display_name=name)


def make_child(idx: str, name: str, parent_id: str) -> Record:
    return Record(id=idx, display_name=name, parent_id=parent_id)


class FakeCredentials:
    def __init__(self, token: str = "token-1"):
        self.result = TokenResult(credential=Credential(token=token))
        self.calls = 0
        self.invalidated = 0

    def fail_with(self, reason: str) -> None:
        self.result = TokenResult(error=AuthError(reason))

    async def get_token(self) -> TokenResult:
        self.calls += 1
        return self.result

    def invalidate(self) -> None:
        self.invalidated += 1


class FakeFetcher:
    """Serves canned results; a gate per parent id holds that child request until released."""

    def __init__(self):
        self.parents = FetchResult()
        self.children: dict[str, FetchResult] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, str, FilterExpression | None]] = []

    def hold(self, parent_id: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[parent_id] = gate
        return gate

    def child_failure(self, parent_id: str, status: int, message: str) -> None:
        self.children[parent_id] = FetchResult(error=FetchError(status, message))

    async def fetch(self, entity, token, *, filter_expr=None):
        self.calls.append((entity.entity_set, token, filter_expr))
        if filter_expr is None:
            return self.parents
        gate = self.gates.get(filter_expr.value)
        if gate is not None:
            await gate.wait()
        return self.children.get(filter_expr.value, FetchResult())

    async def close(self) -> None:
        return None


async def wait_until(predicate, *, attempts: int = 50) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")
