from enum import Enum
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator


class TargetKind(str, Enum):
    REPOSITORY = "repository"
    ORGANISATION = "organisation"


class Target(BaseModel):
    """
    Immutable identifier of one repository or organisation to monitor.
    The configured set of targets is fixed for the lifetime of the process.
    """
    model_config = ConfigDict(frozen=True)

    kind: TargetKind = Field(..., description="Whether this is a repository or an organisation")
    owner: str = Field(..., min_length=1, description="Login of the owning user or organisation")
    name: Optional[str] = Field(None, description="Repository name; empty for organisations")

    @classmethod
    def repository(cls, slug: str) -> "Target":
        """Builds a repository target from an ``owner/name`` string."""
        owner, sep, name = slug.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"repo must be in format owner/name, got {slug!r}")
        return cls(kind=TargetKind.REPOSITORY, owner=owner, name=name)

    @classmethod
    def organisation(cls, login: str) -> "Target":
        return cls(kind=TargetKind.ORGANISATION, owner=login.strip())

    @property
    def identifier(self) -> str:
        if self.kind is TargetKind.REPOSITORY:
            return f"{self.owner}/{self.name}"
        return self.owner

    def labels(self) -> Dict[str, str]:
        """Labels identifying this target on every sample it produces."""
        if self.kind is TargetKind.REPOSITORY:
            return {"owner": self.owner, "repository": self.name}
        return {"organisation": self.owner}

    def __str__(self) -> str:
        return self.identifier


class MetricSample(BaseModel):
    """One value of one metric series, as last observed."""
    model_config = ConfigDict(frozen=True)

    name: str
    labels: Tuple[Tuple[str, str], ...] = Field(default=(), description="Sorted (label, value) pairs")
    value: float
    timestamp: float = Field(..., description="Epoch seconds at which the value was fetched")

    @field_validator("labels", mode="before")
    @classmethod
    def _normalise_labels(cls, value):
        items = value.items() if isinstance(value, dict) else value
        pairs = tuple(sorted((str(k), str(v)) for k, v in items))
        keys = [k for k, _ in pairs]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate label names: {keys}")
        return pairs

    @property
    def label_dict(self) -> Dict[str, str]:
        return dict(self.labels)


class TargetState(BaseModel):
    """
    Point-in-time record of what is known about one target.
    Replaced as a whole by the metric cache, never mutated in place.
    """
    model_config = ConfigDict(frozen=True)

    samples: Tuple[MetricSample, ...] = ()
    last_success_at: Optional[float] = None
    last_error: Optional[str] = None
    last_error_kind: Optional[str] = None
    last_error_at: Optional[float] = None
    stale: bool = False


class Permit(BaseModel):
    """Granted reservation of API calls from the shared rate budget."""
    model_config = ConfigDict(frozen=True)

    cost: int = Field(..., ge=1)
    granted_at: float
