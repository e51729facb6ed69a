"""Share lifecycle and access-control resolution."""

from .lifecycle import LinkResolution, ShareLifecycleManager
from .model import (
    AccessDecision,
    GrantedVia,
    Permission,
    Share,
    ShareKind,
)
from .resolver import PermissionResolver, evaluate_share
from .sweep import ExpiredShareSweeper, SweepReport
from .tokens import LinkTokenIssuer

__all__ = [
    'AccessDecision',
    'ExpiredShareSweeper',
    'GrantedVia',
    'LinkResolution',
    'LinkTokenIssuer',
    'Permission',
    'PermissionResolver',
    'Share',
    'ShareKind',
    'ShareLifecycleManager',
    'SweepReport',
    'evaluate_share',
]
