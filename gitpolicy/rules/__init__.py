"""Policy rules for gitpolicy."""

from .results import Result, Status, create_result
from .base import Rule
from .identity import IdentityRule
from .protocol import ProtocolRule
from .remotes import RemoteTopologyRule
from .attribution import AttributionRule
from .staleness import StalenessRule
from .submodules import SubmoduleRule
from .branches import BranchCleanupRule
from .unpushed import UnpushedRule

__all__ = [
    'Result',
    'Status',
    'create_result',
    'Rule',
    'IdentityRule',
    'ProtocolRule',
    'RemoteTopologyRule',
    'AttributionRule',
    'StalenessRule',
    'SubmoduleRule',
    'BranchCleanupRule',
    'UnpushedRule'
]
