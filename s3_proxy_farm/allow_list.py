"""
Allow-list rules for the proxy farm.

Each allowed CIDR range becomes one allow rule on the proxy port. Anything
that materializes the rules as an access policy must close it with the
deny-all rule returned by :func:`with_deny_all`.
"""

import enum
import ipaddress
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from aws_cdk import Token, aws_ec2 as ec2

from .errors import FleetConfigurationError

DENY_ALL_SOURCE = "all"


class RuleAction(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class AllowListRule:
    """A single access rule scoped to the proxy port."""

    source: str
    port: int
    action: RuleAction = RuleAction.ALLOW

    @property
    def directive(self) -> str:
        """nginx access directive for this rule, without the trailing semicolon."""
        return f"{self.action.value} {self.source}"

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.source

    def to_peer(self) -> ec2.IPeer:
        """Security group peer matching the rule source."""
        if self.action is not RuleAction.ALLOW:
            raise FleetConfigurationError("Only allow rules map to security group peers")
        if self.is_ipv6:
            return ec2.Peer.ipv6(self.source)
        return ec2.Peer.ipv4(self.source)


def validate_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise FleetConfigurationError(f"Invalid proxy port: {port!r}")
    return port


def normalize_cidr(cidr_range: str) -> str:
    """
    Validate a CIDR range and return it in canonical text form.

    Host bits are accepted, as with ``ec2.Peer.ipv4``; the prefix length must
    be explicit. Unresolved CDK tokens (e.g. a ``CfnParameter`` value) are
    returned unchanged; their value is only known at deploy time.

    Raises:
        FleetConfigurationError: If the range is not CIDR notation
    """
    if isinstance(cidr_range, str) and Token.is_unresolved(cidr_range):
        return cidr_range
    if not isinstance(cidr_range, str) or "/" not in cidr_range:
        raise FleetConfigurationError(f"Invalid CIDR range: {cidr_range!r}")
    try:
        interface = ipaddress.ip_interface(cidr_range.strip())
    except ValueError as e:
        raise FleetConfigurationError(f"Invalid CIDR range: {cidr_range!r} ({e})") from e
    return interface.with_prefixlen


def derive_rules(ranges: Iterable[str], port: int) -> List[AllowListRule]:
    """
    Derive one allow rule per CIDR range, in input order.

    An empty input yields no rules, which leaves the farm reachable from
    nowhere once the deny-all rule is appended.

    Args:
        ranges: CIDR ranges allowed to reach the proxy
        port: Proxy listening port

    Returns:
        List of allow rules bound to ``port``
    """
    validate_port(port)
    if isinstance(ranges, str):
        raise FleetConfigurationError("CIDR ranges must be a sequence of strings, not a string")
    return [AllowListRule(source=normalize_cidr(cidr_range), port=port) for cidr_range in ranges]


def with_deny_all(rules: Sequence[AllowListRule], port: int) -> List[AllowListRule]:
    """Return ``rules`` followed by the mandatory trailing deny-all rule."""
    return list(rules) + [AllowListRule(source=DENY_ALL_SOURCE, port=port, action=RuleAction.DENY)]
