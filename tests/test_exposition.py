import unittest

from fakes import FakeClock
from github_exporter.application.exposition import render
from github_exporter.application.metric_cache import MetricCache
from github_exporter.domain.exceptions import Transient
from github_exporter.domain.models import MetricSample, Target
from github_exporter.infrastructure.rate_budget import RateBudget


def _sample(target: Target, name: str, value: float, **labels) -> MetricSample:
    return MetricSample(name=name, labels={**target.labels(), **labels}, value=value, timestamp=0.0)


class TestRender(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(start=0.0)
        self.hello = Target.repository("octocat/Hello-World")
        self.org = Target.organisation("octo-org")
        self.cache = MetricCache([self.hello, self.org], clock=self.clock)

    def test_stale_scenario_keeps_last_good_values(self) -> None:
        self.cache.update(self.hello, [
            _sample(self.hello, "github_repo_stars", 42),
            _sample(self.hello, "github_repo_open_issues", 3),
        ])

        self.clock.now = 1
        first = render(self.cache.snapshot()).decode()

        self.assertIn('github_repo_stars{owner="octocat",repository="Hello-World"} 42.0', first)
        self.assertIn('github_repo_open_issues{owner="octocat",repository="Hello-World"} 3.0', first)
        self.assertIn('github_exporter_target_stale{kind="repository",target="octocat/Hello-World"} 0.0', first)

        self.clock.now = 60
        self.cache.update_failure(self.hello, Transient("timeout"))
        self.clock.now = 61
        second = render(self.cache.snapshot()).decode()

        self.assertIn('github_repo_stars{owner="octocat",repository="Hello-World"} 42.0', second)
        self.assertIn('github_repo_open_issues{owner="octocat",repository="Hello-World"} 3.0', second)
        self.assertIn('github_exporter_target_stale{kind="repository",target="octocat/Hello-World"} 1.0', second)
        self.assertIn(
            'github_exporter_target_last_error_timestamp_seconds'
            '{error="Transient",kind="repository",target="octocat/Hello-World"} 60.0',
            second,
        )

    def test_rendering_is_idempotent(self) -> None:
        self.cache.update(self.hello, [_sample(self.hello, "github_repo_stars", 42)])
        self.cache.update_failure(self.org, Transient("502"))
        snapshot = self.cache.snapshot()

        self.assertEqual(render(snapshot), render(snapshot))

    def test_output_is_independent_of_sample_order(self) -> None:
        stars = _sample(self.hello, "github_repo_stars", 42)
        forks = _sample(self.hello, "github_repo_forks", 7)

        self.cache.update(self.hello, [stars, forks])
        first = render(self.cache.snapshot())
        self.cache.update(self.hello, [forks, stars])
        second = render(self.cache.snapshot())

        self.assertEqual(first, second)

    def test_families_are_sorted_by_name(self) -> None:
        self.cache.update(self.hello, [
            _sample(self.hello, "github_repo_stars", 42),
            _sample(self.hello, "github_repo_forks", 7),
        ])

        text = render(self.cache.snapshot()).decode()
        types = [line.split()[2] for line in text.splitlines() if line.startswith("# TYPE")]

        self.assertEqual(types, sorted(types))

    def test_nan_samples_are_omitted_without_failing_the_render(self) -> None:
        self.cache.update(self.hello, [
            _sample(self.hello, "github_repo_stars", 42),
            _sample(self.hello, "github_workflow_last_run_duration_seconds", float("nan"), workflow="CI"),
        ])

        with self.assertLogs("github_exporter.application.exposition", level="WARNING"):
            text = render(self.cache.snapshot()).decode()

        self.assertIn("github_repo_stars", text)
        self.assertNotIn("NaN", text)

    def test_rate_budget_series_are_rendered_when_known(self) -> None:
        budget = RateBudget(clock=self.clock)
        budget.record_response(remaining=4999, reset_at=3600)

        text = render(self.cache.snapshot(), budget).decode()

        self.assertIn("github_exporter_rate_limit_remaining 4999.0", text)
        self.assertIn("github_exporter_rate_limit_reset_timestamp_seconds 3600.0", text)

    def test_never_fetched_target_only_reports_meta_metrics(self) -> None:
        text = render(self.cache.snapshot()).decode()

        self.assertIn('github_exporter_target_samples{kind="organisation",target="octo-org"} 0.0', text)
        self.assertNotIn("github_exporter_target_last_success_timestamp_seconds{", text)

    def test_duplicate_series_are_emitted_once(self) -> None:
        self.cache.update(self.hello, [
            _sample(self.hello, "github_workflow_last_run_success", 1, workflow="CI"),
            _sample(self.hello, "github_workflow_last_run_success", 0, workflow="CI"),
        ])

        with self.assertLogs("github_exporter.application.exposition", level="WARNING"):
            text = render(self.cache.snapshot()).decode()

        self.assertEqual(text.count('github_workflow_last_run_success{owner="octocat"'), 1)
