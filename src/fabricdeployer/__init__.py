"""
fabricdeployer - Publish-profile driven multi-application deployment tool
"""

__version__ = "0.3.0"

from .core import FabricDeployer
from .errors import DeployerError

__all__ = ["FabricDeployer", "DeployerError"]
