import logging
from typing import Dict, List, Tuple

import aiohttp

from github_exporter.domain.exceptions import NotFound, Transient
from github_exporter.domain.models import MetricSample, Target, TargetKind
from github_exporter.infrastructure.acl import GitHubTranslator
from github_exporter.infrastructure.clock import Clock, SYSTEM_CLOCK
from github_exporter.infrastructure.github_client import GitHubRestClient
from github_exporter.infrastructure.payloads import WorkflowListPayload, WorkflowPayload

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOWS_REFRESH = 1800
WORKFLOWS_PAGE_SIZE = 100


class RepositoryFetcher:
    """
    Performs every API call needed to derive one target's metric set.

    A fetch either returns the complete sample list for the target or raises a
    FetchError; samples gathered before a failing call are thrown away with it.
    """

    def __init__(
        self,
        github_client: GitHubRestClient,
        workflows_refresh: float = DEFAULT_WORKFLOWS_REFRESH,
        clock: Clock = SYSTEM_CLOCK,
    ):
        self.github_client = github_client
        self.workflows_refresh = workflows_refresh
        self.clock = clock
        # Workflow lists change rarely, so they are re-listed on their own slower cadence
        self._workflows: Dict[Target, Tuple[float, List[WorkflowPayload]]] = {}

    async def fetch(self, session: aiohttp.ClientSession, target: Target) -> List[MetricSample]:
        if target.kind is TargetKind.REPOSITORY:
            return await self._fetch_repository(session, target)
        return await self._fetch_organisation(session, target)

    async def _fetch_repository(self, session, target: Target) -> List[MetricSample]:
        base = f"repos/{target.owner}/{target.name}"
        get = self.github_client.get_json

        at = self.clock.time()
        samples = GitHubTranslator.repository(target, await get(session, base), at)

        workflows = await self._active_workflows(session, target, base)
        try:
            samples.extend(await self._workflow_samples(session, target, base, workflows, at))
        except NotFound:
            # A workflow was deleted since the list was cached; the repository itself is fine
            logger.info(f"Workflow list of {target} is out of date, re-listing.")
            self._workflows.pop(target, None)
            workflows = await self._active_workflows(session, target, base)
            try:
                samples.extend(await self._workflow_samples(session, target, base, workflows, at))
            except NotFound as e:
                raise Transient(f"Workflows of {target} changed during the fetch: {e}") from e

        return samples

    async def _workflow_samples(
        self, session, target: Target, base: str, workflows: List[WorkflowPayload], at: float
    ) -> List[MetricSample]:
        get = self.github_client.get_json
        samples = []
        for workflow in workflows:
            path = f"{base}/actions/workflows/{workflow.id}"
            timing = await get(session, f"{path}/timing")
            samples.extend(GitHubTranslator.workflow_timing(target, workflow, timing, at))
            runs = await get(session, f"{path}/runs", params={"per_page": 1})
            samples.extend(GitHubTranslator.workflow_last_run(target, workflow, runs, at))
        return samples

    async def _active_workflows(self, session, target: Target, base: str) -> List[WorkflowPayload]:
        now = self.clock.monotonic()
        cached = self._workflows.get(target)
        if cached is not None and now - cached[0] < self.workflows_refresh:
            return cached[1]

        raw = await self.github_client.get_json(
            session, f"{base}/actions/workflows", params={"per_page": WORKFLOWS_PAGE_SIZE}
        )
        listing = GitHubTranslator.decode(WorkflowListPayload, raw)
        workflows = [w for w in listing.workflows if w.active]
        self._workflows[target] = (now, workflows)

        logger.info(f"Found {len(workflows)} active workflow(s) for {target}: {[w.name for w in workflows]}")
        return workflows

    async def _fetch_organisation(self, session, target: Target) -> List[MetricSample]:
        base = f"orgs/{target.owner}"
        get = self.github_client.get_json

        at = self.clock.time()
        samples = GitHubTranslator.organisation(target, await get(session, base), at)
        samples.extend(GitHubTranslator.actions_billing(
            target, await get(session, f"{base}/settings/billing/actions"), at))
        samples.extend(GitHubTranslator.packages_billing(
            target, await get(session, f"{base}/settings/billing/packages"), at))
        samples.extend(GitHubTranslator.shared_storage_billing(
            target, await get(session, f"{base}/settings/billing/shared-storage"), at))
        return samples
