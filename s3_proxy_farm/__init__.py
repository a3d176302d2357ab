"""
S3 Proxy Farm - auto scaled reverse proxies for private S3 static websites.
"""

from .allow_list import AllowListRule, RuleAction, derive_rules, with_deny_all
from .bootstrap import render_bootstrap_script
from .errors import (
    FleetConfigurationError,
    MergeConflictError,
    ProxyFarmError,
    UnsupportedValueError,
)
from .farm import S3ProxyFarm, S3ProxyFarmProps
from .merge import ValueKind, classify, deep_merge

__all__ = [
    "AllowListRule",
    "FleetConfigurationError",
    "MergeConflictError",
    "ProxyFarmError",
    "RuleAction",
    "S3ProxyFarm",
    "S3ProxyFarmProps",
    "UnsupportedValueError",
    "ValueKind",
    "classify",
    "deep_merge",
    "derive_rules",
    "render_bootstrap_script",
    "with_deny_all",
]

__version__ = "1.0.0"
