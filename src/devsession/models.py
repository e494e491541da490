"""Shared domain models for devsession."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SessionTarget:
    """Identifiers consumed by the login, kubeconfig and token steps."""

    profile: str
    db_profile: str
    cluster: str
    db_hostname: str
    db_port: int
    region: str
    db_username: str


@dataclass(frozen=True)
class TunnelTarget:
    """Coordinates for the opt-in kubectl port-forward."""

    service: str
    namespace: str
    local_port: int
    remote_port: int


@dataclass(frozen=True)
class StepCommand:
    name: str
    argv: Tuple[str, ...]
    description: str
    capture_output: bool = True
    interactive: bool = False
