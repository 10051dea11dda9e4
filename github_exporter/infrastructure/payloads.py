"""Typed shapes of the GitHub REST payloads the exporter consumes.

Only the fields that feed metrics are declared; anything else GitHub sends is
ignored. A payload missing a declared field fails validation instead of
leaking untyped data further in.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class RepositoryPayload(_Payload):
    stargazers_count: int = Field(..., ge=0)
    forks_count: int = Field(..., ge=0)
    open_issues_count: int = Field(..., ge=0)
    subscribers_count: Optional[int] = Field(None, ge=0)
    size: int = Field(0, ge=0, description="Repository size in kilobytes")
    archived: bool = False


class WorkflowPayload(_Payload):
    id: int
    name: str
    state: str = "active"

    @property
    def active(self) -> bool:
        return self.state == "active"


class WorkflowListPayload(_Payload):
    total_count: int = 0
    workflows: List[WorkflowPayload]


class BillableTime(_Payload):
    total_ms: float = Field(..., ge=0)


class Billable(_Payload):
    ubuntu: Optional[BillableTime] = Field(None, alias="UBUNTU")
    macos: Optional[BillableTime] = Field(None, alias="MACOS")
    windows: Optional[BillableTime] = Field(None, alias="WINDOWS")


class WorkflowTimingPayload(_Payload):
    billable: Billable


class WorkflowRunPayload(_Payload):
    id: int
    status: Optional[str] = None
    conclusion: Optional[str] = None
    created_at: datetime
    run_started_at: Optional[datetime] = None
    updated_at: datetime


class WorkflowRunListPayload(_Payload):
    total_count: int = 0
    workflow_runs: List[WorkflowRunPayload]


class OrganisationPayload(_Payload):
    public_repos: int = Field(0, ge=0)
    followers: int = Field(0, ge=0)


class MinutesUsedBreakdown(_Payload):
    ubuntu: Optional[float] = Field(None, alias="UBUNTU")
    macos: Optional[float] = Field(None, alias="MACOS")
    windows: Optional[float] = Field(None, alias="WINDOWS")


class ActionsBillingPayload(_Payload):
    total_minutes_used: float
    # GitHub has been seen sending this one as a string
    total_paid_minutes_used: float
    included_minutes: float
    minutes_used_breakdown: MinutesUsedBreakdown = Field(default_factory=MinutesUsedBreakdown)


class PackagesBillingPayload(_Payload):
    total_gigabytes_bandwidth_used: float
    total_paid_gigabytes_bandwidth_used: float
    included_gigabytes_bandwidth: float


class SharedStorageBillingPayload(_Payload):
    days_left_in_billing_cycle: float
    estimated_paid_storage_for_month: float
    estimated_storage_for_month: float
