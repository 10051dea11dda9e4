from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError

from github_exporter.domain import metric_names as m
from github_exporter.domain.exceptions import Transient
from github_exporter.domain.models import MetricSample, Target
from github_exporter.infrastructure.payloads import (
    ActionsBillingPayload,
    OrganisationPayload,
    PackagesBillingPayload,
    RepositoryPayload,
    SharedStorageBillingPayload,
    WorkflowPayload,
    WorkflowRunListPayload,
    WorkflowTimingPayload,
)

P = TypeVar("P", bound=BaseModel)

OS_NAMES = ("ubuntu", "macos", "windows")


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into MetricSamples.
    """

    @staticmethod
    def decode(model: Type[P], raw: Any) -> P:
        """
        Validates a raw payload against its expected shape.

        Raises:
            Transient: The payload does not have the expected shape.
        """
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise Transient(f"Unexpected {model.__name__} shape: {e.error_count()} error(s)") from e

    @staticmethod
    def _sample(name: str, labels: Dict[str, str], value: float, at: float) -> MetricSample:
        return MetricSample(name=name, labels=labels, value=float(value), timestamp=at)

    @classmethod
    def repository(cls, target: Target, raw: Any, at: float) -> List[MetricSample]:
        repo = cls.decode(RepositoryPayload, raw)
        labels = target.labels()
        samples = [
            cls._sample(m.REPO_STARS, labels, repo.stargazers_count, at),
            cls._sample(m.REPO_FORKS, labels, repo.forks_count, at),
            cls._sample(m.REPO_OPEN_ISSUES, labels, repo.open_issues_count, at),
            cls._sample(m.REPO_SIZE, labels, repo.size, at),
            cls._sample(m.REPO_ARCHIVED, labels, 1 if repo.archived else 0, at),
        ]
        if repo.subscribers_count is not None:
            samples.append(cls._sample(m.REPO_WATCHERS, labels, repo.subscribers_count, at))
        return samples

    @classmethod
    def workflow_timing(
        cls, target: Target, workflow: WorkflowPayload, raw: Any, at: float
    ) -> List[MetricSample]:
        timing = cls.decode(WorkflowTimingPayload, raw)
        return [
            cls._sample(m.ACTIONS_BILLABLE, {**_workflow_labels(target, workflow), "os": os_label},
                        billable.total_ms / 1000.0, at)
            for os_label, billable in _per_os(timing.billable)
        ]

    @classmethod
    def workflow_last_run(
        cls, target: Target, workflow: WorkflowPayload, raw: Any, at: float
    ) -> List[MetricSample]:
        runs = cls.decode(WorkflowRunListPayload, raw)
        if not runs.workflow_runs:
            return []

        run = runs.workflow_runs[0]
        labels = _workflow_labels(target, workflow)
        samples = [cls._sample(m.WORKFLOW_LAST_RUN_TIMESTAMP, labels, run.created_at.timestamp(), at)]

        # A run still in progress has no conclusion and no final duration yet
        if run.status == "completed":
            started = run.run_started_at or run.created_at
            duration = max((run.updated_at - started).total_seconds(), 0.0)
            samples.append(cls._sample(m.WORKFLOW_LAST_RUN_DURATION, labels, duration, at))
            samples.append(cls._sample(m.WORKFLOW_LAST_RUN_SUCCESS, labels,
                                       1 if run.conclusion == "success" else 0, at))
        return samples

    @classmethod
    def organisation(cls, target: Target, raw: Any, at: float) -> List[MetricSample]:
        org = cls.decode(OrganisationPayload, raw)
        labels = target.labels()
        return [
            cls._sample(m.ORG_PUBLIC_REPOS, labels, org.public_repos, at),
            cls._sample(m.ORG_FOLLOWERS, labels, org.followers, at),
        ]

    @classmethod
    def actions_billing(cls, target: Target, raw: Any, at: float) -> List[MetricSample]:
        billing = cls.decode(ActionsBillingPayload, raw)
        labels = target.labels()
        samples = [
            cls._sample(m.ORG_ACTIONS_TOTAL_MINUTES_USED, labels, billing.total_minutes_used, at),
            cls._sample(m.ORG_ACTIONS_TOTAL_PAID_MINUTES_USED, labels, billing.total_paid_minutes_used, at),
            cls._sample(m.ORG_ACTIONS_INCLUDED_MINUTES, labels, billing.included_minutes, at),
        ]
        for os_label, minutes in _per_os(billing.minutes_used_breakdown):
            samples.append(cls._sample(m.ORG_ACTIONS_MINUTES_USED_BREAKDOWN,
                                       {**labels, "os": os_label}, minutes, at))
        return samples

    @classmethod
    def packages_billing(cls, target: Target, raw: Any, at: float) -> List[MetricSample]:
        billing = cls.decode(PackagesBillingPayload, raw)
        labels = target.labels()
        return [
            cls._sample(m.ORG_PACKAGES_TOTAL_GIGABYTES_BANDWIDTH_USED, labels,
                        billing.total_gigabytes_bandwidth_used, at),
            cls._sample(m.ORG_PACKAGES_TOTAL_PAID_GIGABYTES_BANDWIDTH_USED, labels,
                        billing.total_paid_gigabytes_bandwidth_used, at),
            cls._sample(m.ORG_PACKAGES_INCLUDED_GIGABYTES_BANDWIDTH, labels,
                        billing.included_gigabytes_bandwidth, at),
        ]

    @classmethod
    def shared_storage_billing(cls, target: Target, raw: Any, at: float) -> List[MetricSample]:
        billing = cls.decode(SharedStorageBillingPayload, raw)
        labels = target.labels()
        return [
            cls._sample(m.ORG_SHARED_STORAGE_DAYS_LEFT, labels, billing.days_left_in_billing_cycle, at),
            cls._sample(m.ORG_SHARED_STORAGE_ESTIMATED_PAID, labels,
                        billing.estimated_paid_storage_for_month, at),
            cls._sample(m.ORG_SHARED_STORAGE_ESTIMATED, labels, billing.estimated_storage_for_month, at),
        ]


def _per_os(breakdown: BaseModel):
    for os_label in OS_NAMES:
        value: Optional[Any] = getattr(breakdown, os_label)
        if value is not None:
            yield os_label, value


def _workflow_labels(target: Target, workflow: WorkflowPayload) -> Dict[str, str]:
    # Display names are not unique within a repository
    return {**target.labels(), "workflow": workflow.name, "workflow_id": str(workflow.id)}
