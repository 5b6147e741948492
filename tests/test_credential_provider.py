import asyncio
import unittest

from cascade_bot.domain import AuthError, Credential
from cascade_bot.infrastructure.auth import CachedCredentialProvider, MemoryTokenStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingSource:
    def __init__(self, *, lifetime: float | None = 3600.0, clock: FakeClock | None = None):
        self.calls = 0
        self.lifetime = lifetime
        self.clock = clock or FakeClock()
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.closed = False

    async def acquire(self) -> Credential:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        expires_at = self.clock() + self.lifetime if self.lifetime is not None else None
        return Credential(token=f"token-{self.calls}", expires_at=expires_at)

    async def close(self) -> None:
        self.closed = True


class CachedCredentialProviderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.source = CountingSource(clock=self.clock)
        self.store = MemoryTokenStore()
        self.provider = CachedCredentialProvider(
            self.source,
            scope="https://org.example/.default",
            store=self.store,
            expiry_skew_seconds=60,
            clock=self.clock,
        )

    async def test_second_call_reuses_cached_token(self):
        first = await self.provider.get_token()
        second = await self.provider.get_token()

        self.assertTrue(first.ok)
        self.assertEqual(first.credential, second.credential)
        self.assertEqual(self.source.calls, 1)

    async def test_concurrent_calls_share_one_acquisition(self):
        self.source.gate = asyncio.Event()

        first = asyncio.create_task(self.provider.get_token())
        second = asyncio.create_task(self.provider.get_token())
        await asyncio.sleep(0)
        self.source.gate.set()
        results = await asyncio.gather(first, second)

        self.assertEqual(self.source.calls, 1)
        self.assertEqual(results[0].credential.token, "token-1")
        self.assertEqual(results[1].credential.token, "token-1")

    async def test_concurrent_callers_share_a_failed_attempt(self):
        self.source.gate = asyncio.Event()
        self.source.error = AuthError("Token request failed: 500")

        first = asyncio.create_task(self.provider.get_token())
        second = asyncio.create_task(self.provider.get_token())
        await asyncio.sleep(0)
        self.source.gate.set()
        results = await asyncio.gather(first, second)

        self.assertEqual(self.source.calls, 1)
        for result in results:
            self.assertFalse(result.ok)
            self.assertIn("500", result.error.reason)

    async def test_failure_caches_nothing(self):
        self.source.error = AuthError("denied")

        result = await self.provider.get_token()

        self.assertFalse(result.ok)
        self.assertIsNone(self.store.get(self.provider.scope))
        self.source.error = None
        retry = await self.provider.get_token()
        self.assertTrue(retry.ok)
        self.assertEqual(self.source.calls, 2)

    async def test_token_is_replaced_when_close_to_expiry(self):
        await self.provider.get_token()
        self.clock.now += 3600 - 30

        result = await self.provider.get_token()

        self.assertEqual(result.credential.token, "token-2")
        self.assertEqual(self.source.calls, 2)

    async def test_short_lived_token_is_reused_despite_large_skew(self):
        self.source.lifetime = 30

        await self.provider.get_token()
        self.clock.now += 10
        result = await self.provider.get_token()

        self.assertEqual(result.credential.token, "token-1")
        self.assertEqual(self.source.calls, 1)

        self.clock.now += 10
        result = await self.provider.get_token()

        self.assertEqual(result.credential.token, "token-2")
        self.assertEqual(self.source.calls, 2)

    async def test_token_without_expiry_never_expires(self):
        self.source.lifetime = None
        await self.provider.get_token()
        self.clock.now += 10 ** 6

        await self.provider.get_token()

        self.assertEqual(self.source.calls, 1)

    async def test_invalidate_forces_new_acquisition(self):
        await self.provider.get_token()

        self.provider.invalidate()
        result = await self.provider.get_token()

        self.assertEqual(result.credential.token, "token-2")

    async def test_unexpected_source_error_becomes_auth_error(self):
        self.source.error = ValueError("bad json")

        result = await self.provider.get_token()

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, AuthError)
        self.assertIn("bad json", result.error.reason)

    async def test_store_is_shared_between_providers_of_same_scope(self):
        await self.provider.get_token()
        other_source = CountingSource(clock=self.clock)
        other = CachedCredentialProvider(
            other_source,
            scope=self.provider.scope,
            store=self.store,
            clock=self.clock,
        )

        result = await other.get_token()

        self.assertEqual(result.credential.token, "token-1")
        self.assertEqual(other_source.calls, 0)

    async def test_close_releases_source(self):
        await self.provider.close()

        self.assertTrue(self.source.closed)


class CredentialTests(unittest.TestCase):
    def test_validity_respects_skew(self):
        credential = Credential(token="abc", expires_at=1000.0)

        self.assertTrue(credential.is_valid(900.0, skew=60))
        self.assertFalse(credential.is_valid(950.0, skew=60))

    def test_skew_is_capped_at_half_of_lifetime(self):
        credential = Credential(token="abc", expires_at=1030.0, issued_at=1000.0)

        self.assertTrue(credential.is_valid(1000.0, skew=60))
        self.assertTrue(credential.is_valid(1014.0, skew=60))
        self.assertFalse(credential.is_valid(1015.0, skew=60))

    def test_token_is_hidden_from_repr(self):
        self.assertNotIn("secret", repr(Credential(token="secret")))


if __name__ == "__main__":
    unittest.main()
