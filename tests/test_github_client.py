import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from fakes import FakeClock, fake_response
from github_exporter.domain.exceptions import AuthError, NotFound, RateLimited, Transient
from github_exporter.infrastructure.github_client import DEFAULT_RATE_LIMIT_WAIT, GitHubRestClient, MAX_RETRIES
from github_exporter.infrastructure.rate_budget import RateBudget


def _client(clock: FakeClock, budget: RateBudget = None) -> GitHubRestClient:
    return GitHubRestClient(token="test-token", rate_budget=budget or RateBudget(clock=clock), clock=clock)


def _session(*responses) -> AsyncMock:
    session = AsyncMock()
    session.get = MagicMock(side_effect=list(responses))
    return session


class TestGitHubRestClient(unittest.TestCase):
    def test_headers_are_dict(self) -> None:
        token = "test-token"
        client = GitHubRestClient(token=token, rate_budget=RateBudget())

        self.assertIsInstance(client.headers, dict)
        self.assertEqual(client.headers["Authorization"], f"Bearer {token}")

    def test_headers_include_user_agent(self) -> None:
        client = GitHubRestClient(token="t", rate_budget=RateBudget())
        self.assertIn("User-Agent", client.headers)
        self.assertIn("Accept", client.headers)

    def test_enterprise_base_url_is_normalised(self) -> None:
        client = GitHubRestClient(token="t", rate_budget=RateBudget(), base_url="https://ghe.example.com/api/v3/")
        self.assertEqual(client.api_url, "https://ghe.example.com/api/v3")


class TestGetJson(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.clock = FakeClock()
        self.budget = RateBudget(clock=self.clock)
        self.client = _client(self.clock, self.budget)

    async def test_success_records_rate_limit_headers(self) -> None:
        reset = int(self.clock.now) + 600
        session = _session(fake_response(200, {"stargazers_count": 42}, {
            "X-RateLimit-Remaining": "4321",
            "X-RateLimit-Reset": str(reset),
        }))

        body = await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(body, {"stargazers_count": 42})
        self.assertEqual(self.budget.view(), (4321, float(reset)))
        url = session.get.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/repos/octocat/Hello-World")

    async def test_server_error_is_retried_with_backoff(self) -> None:
        session = _session(fake_response(502), fake_response(200, {"ok": True}))

        body = await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(body, {"ok": True})
        self.assertEqual(session.get.call_count, 2)
        self.assertEqual(len(self.clock.sleeps), 1)
        self.assertGreaterEqual(self.clock.sleeps[0], 1)

    async def test_connection_error_is_transient_and_retried(self) -> None:
        session = _session(aiohttp.ClientConnectionError("reset"), fake_response(200, []))

        body = await self.client.get_json(session, "orgs/octo")

        self.assertEqual(body, [])
        self.assertEqual(session.get.call_count, 2)

    async def test_transient_surfaces_after_bounded_retries(self) -> None:
        session = _session(*[fake_response(503) for _ in range(MAX_RETRIES)])

        with self.assertRaises(Transient):
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(session.get.call_count, MAX_RETRIES)
        self.assertEqual(len(self.clock.sleeps), MAX_RETRIES - 1)
        self.assertLess(self.clock.sleeps[0], self.clock.sleeps[1])

    async def test_malformed_json_is_transient(self) -> None:
        bad = fake_response(200)
        bad.json = AsyncMock(side_effect=ValueError("Expecting value"))
        session = _session(bad, fake_response(200, {"ok": True}))

        body = await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(body, {"ok": True})

    async def test_not_found_is_not_retried(self) -> None:
        session = _session(fake_response(404))

        with self.assertRaises(NotFound):
            await self.client.get_json(session, "repos/octocat/gone")

        self.assertEqual(session.get.call_count, 1)
        self.assertEqual(self.clock.sleeps, [])

    async def test_bad_credentials_raise_auth_error(self) -> None:
        session = _session(fake_response(401))

        with self.assertRaises(AuthError):
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(session.get.call_count, 1)

    async def test_forbidden_without_quota_signal_is_auth_error(self) -> None:
        session = _session(fake_response(403, headers={"X-RateLimit-Remaining": "4000"}))

        with self.assertRaises(AuthError):
            await self.client.get_json(session, "orgs/octo/settings/billing/actions")

    async def test_exhausted_quota_raises_rate_limited(self) -> None:
        reset = int(self.clock.now) + 300
        session = _session(fake_response(403, headers={
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(reset),
        }))

        with self.assertRaises(RateLimited) as ctx:
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(ctx.exception.reset_at, reset)
        self.assertEqual(self.budget.view(), (0, float(reset)))

    async def test_403_retry_after_is_respected(self) -> None:
        """Secondary rate limits surface as RateLimited until now + Retry-After."""
        session = _session(fake_response(403, headers={"Retry-After": "30"}))

        with self.assertRaises(RateLimited) as ctx:
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(ctx.exception.reset_at, self.clock.now + 30)
        self.assertEqual(session.get.call_count, 1)

    async def test_local_budget_exhaustion_skips_the_call(self) -> None:
        self.budget.record_response(remaining=0, reset_at=self.clock.now + 300)
        session = _session()

        with self.assertRaises(RateLimited) as ctx:
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(ctx.exception.reset_at, self.clock.now + 300)
        session.get.assert_not_called()

    async def test_429_with_reset_header_is_rate_limited_until_reset(self) -> None:
        reset = int(self.clock.now) + 120
        session = _session(fake_response(429, headers={"X-RateLimit-Reset": str(reset)}))

        with self.assertRaises(RateLimited) as ctx:
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(ctx.exception.reset_at, reset)
        self.assertEqual(session.get.call_count, 1)

    async def test_429_without_reset_header_waits_the_default(self) -> None:
        session = _session(fake_response(429))

        with self.assertRaises(RateLimited) as ctx:
            await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(ctx.exception.reset_at, self.clock.now + DEFAULT_RATE_LIMIT_WAIT)
        self.assertEqual(self.clock.sleeps, [])

    async def test_timeout_is_transient_and_retried(self) -> None:
        session = _session(asyncio.TimeoutError(), fake_response(200, {"ok": True}))

        body = await self.client.get_json(session, "repos/octocat/Hello-World")

        self.assertEqual(body, {"ok": True})
        self.assertEqual(session.get.call_count, 2)
        self.assertEqual(len(self.clock.sleeps), 1)

    async def test_gone_is_not_found(self) -> None:
        session = _session(fake_response(410))

        with self.assertRaises(NotFound):
            await self.client.get_json(session, "repos/octocat/archived-and-removed")

        self.assertEqual(session.get.call_count, 1)

    async def test_unexpected_status_is_transient(self) -> None:
        for status in (304, 422):
            with self.subTest(status=status):
                session = _session(*[fake_response(status) for _ in range(MAX_RETRIES)])

                with self.assertRaises(Transient):
                    await self.client.get_json(session, "repos/octocat/Hello-World")

                self.assertEqual(session.get.call_count, MAX_RETRIES)
