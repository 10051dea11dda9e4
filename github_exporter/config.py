import os
from typing import List, Mapping, Optional, Tuple
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from github_exporter.domain.exceptions import ConfigurationException
from github_exporter.domain.models import Target
from github_exporter.infrastructure.github_client import DEFAULT_API_URL


class ExporterSettings(BaseModel):
    """
    Immutable runtime configuration, read once at startup.
    """
    model_config = ConfigDict(frozen=True)

    github_token: str = Field(..., min_length=1)
    targets: Tuple[Target, ...] = Field(..., min_length=1, description="Repositories and organisations to monitor")
    api_base_url: str = DEFAULT_API_URL
    poll_interval: float = Field(300, gt=0, description="Seconds between fetches of one target")
    workflows_refresh: float = Field(1800, gt=0, description="Seconds between re-listing a repository's workflows")
    concurrency: int = Field(4, ge=1, description="Targets fetched at the same time")
    request_timeout: float = Field(30, gt=0)
    max_backoff: float = Field(3600, gt=0)
    shutdown_grace: float = Field(10, ge=0)
    bind_host: str = "0.0.0.0"
    bind_port: int = Field(8000, ge=0, le=65535)


def _split(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _parse_bind(raw: str) -> Tuple[str, int]:
    host, sep, port = raw.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigurationException(f"GH_EXPORTER_BIND must be host:port, got {raw!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigurationException(f"IPv6 addresses in GH_EXPORTER_BIND need brackets, got {raw!r}")
    return host or "0.0.0.0", int(port)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ExporterSettings:
    """
    Builds the settings from environment variables (and a .env file, if present).

    Raises:
        ConfigurationException: A variable is missing or malformed.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    try:
        targets = [Target.repository(slug) for slug in _split(environ.get("GH_REPOS"))]
        targets += [Target.organisation(login) for login in _split(environ.get("GH_ORGS"))]
    except ValueError as e:
        raise ConfigurationException(str(e)) from e

    if not environ.get("GH_TOKEN"):
        raise ConfigurationException("GH_TOKEN is not set in the environment.")
    if not targets:
        raise ConfigurationException("Neither GH_REPOS nor GH_ORGS lists anything to monitor.")

    host, port = _parse_bind(environ.get("GH_EXPORTER_BIND", "0.0.0.0:8000"))

    values = {
        "github_token": environ["GH_TOKEN"],
        # Duplicates would mean two TargetStates for one target
        "targets": tuple(dict.fromkeys(targets)),
        "bind_host": host,
        "bind_port": port,
    }
    optional = {
        "api_base_url": "GH_API_BASEURL",
        "poll_interval": "GH_POLL_INTERVAL",
        "workflows_refresh": "GH_WORKFLOWS_REFRESH",
        "concurrency": "GH_CONCURRENCY",
        "request_timeout": "GH_REQUEST_TIMEOUT",
        "max_backoff": "GH_MAX_BACKOFF",
        "shutdown_grace": "GH_SHUTDOWN_GRACE",
    }
    for field, variable in optional.items():
        if environ.get(variable):
            values[field] = environ[variable]

    try:
        return ExporterSettings(**values)
    except ValidationError as e:
        raise ConfigurationException(f"Invalid configuration: {e}") from e
