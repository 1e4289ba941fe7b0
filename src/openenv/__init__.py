"""
OpenEnv - hosting environment resolution and SQL Server database cloning
"""

__version__ = "0.3.0"

from .core import OpenEnv
from .errors import OpenEnvError
from .models import DeploymentMode

__all__ = ["OpenEnv", "OpenEnvError", "DeploymentMode"]
