"""
devsession - AWS SSO, EKS kubeconfig and RDS IAM token bootstrap for developers
"""

__version__ = "0.1.0"

from .core import SessionBootstrapper
from .errors import BootstrapError, StepFailedError

__all__ = ["SessionBootstrapper", "BootstrapError", "StepFailedError"]
