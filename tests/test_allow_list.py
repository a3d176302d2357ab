"""
Unit tests for allow-list rule derivation.
"""

import pytest
from aws_cdk import Fn

from s3_proxy_farm.allow_list import (
    AllowListRule,
    RuleAction,
    derive_rules,
    normalize_cidr,
    with_deny_all,
)
from s3_proxy_farm.errors import FleetConfigurationError

PROXY_PORT = 8080


class TestDeriveRules:
    """Tests for derive_rules"""

    def test_one_rule_per_range_in_order(self):
        ranges = ["10.0.192.0/18", "10.0.128.0/18", "192.168.1.0/24"]

        rules = derive_rules(ranges, PROXY_PORT)

        assert len(rules) == len(ranges)
        assert [rule.source for rule in rules] == ranges
        assert all(rule.port == PROXY_PORT for rule in rules)
        assert all(rule.action is RuleAction.ALLOW for rule in rules)

    def test_empty_ranges_closed_by_default(self):
        assert derive_rules([], PROXY_PORT) == []
        assert with_deny_all(derive_rules([], PROXY_PORT), PROXY_PORT) == [
            AllowListRule(source="all", port=PROXY_PORT, action=RuleAction.DENY)
        ]

    def test_accepts_tuples_and_generators(self):
        assert len(derive_rules(("10.0.0.0/8",), PROXY_PORT)) == 1
        assert len(derive_rules((r for r in ["10.0.0.0/8", "172.16.0.0/12"]), PROXY_PORT)) == 2

    def test_ipv6_range(self):
        rules = derive_rules(["2001:db8::/32"], PROXY_PORT)

        assert rules[0].source == "2001:db8::/32"
        assert rules[0].is_ipv6

    def test_string_instead_of_list_rejected(self):
        with pytest.raises(FleetConfigurationError):
            derive_rules("10.0.0.0/8", PROXY_PORT)

    @pytest.mark.parametrize("port", [0, -1, 65536, "8080", True, None])
    def test_invalid_port_rejected(self, port):
        with pytest.raises(FleetConfigurationError):
            derive_rules(["10.0.0.0/8"], port)


class TestNormalizeCidr:
    """Tests for CIDR validation"""

    @pytest.mark.parametrize(
        "value",
        ["10.0.0.0", "10.0.0.0/33", "not-a-cidr/8", "", None, 10, "10.0.0.0/8; deny all"],
    )
    def test_invalid_ranges_rejected(self, value):
        with pytest.raises(FleetConfigurationError):
            normalize_cidr(value)

    def test_host_bits_allowed(self):
        assert normalize_cidr("10.0.0.1/8") == "10.0.0.1/8"

    def test_whitespace_stripped(self):
        assert normalize_cidr(" 0.0.0.0/0 ") == "0.0.0.0/0"

    def test_netmask_normalized_to_prefix_length(self):
        assert normalize_cidr(" 10.0.0.0/255.0.0.0") == "10.0.0.0/8"

    def test_unresolved_token_passed_through(self):
        token = Fn.ref("AllowedRange")

        assert normalize_cidr(token) == token
        assert derive_rules([token], PROXY_PORT)[0].source == token


class TestWithDenyAll:
    """Tests for the trailing deny-all rule"""

    def test_deny_all_appended_last(self):
        rules = derive_rules(["10.0.128.0/18", "10.0.192.0/18"], PROXY_PORT)

        policy = with_deny_all(rules, PROXY_PORT)

        assert policy[:2] == rules
        assert [rule.directive for rule in policy] == [
            "allow 10.0.128.0/18",
            "allow 10.0.192.0/18",
            "deny all",
        ]

    def test_input_not_modified(self):
        rules = derive_rules(["10.0.0.0/8"], PROXY_PORT)

        with_deny_all(rules, PROXY_PORT)

        assert len(rules) == 1

    def test_deny_rule_has_no_peer(self):
        deny = with_deny_all([], PROXY_PORT)[0]

        with pytest.raises(FleetConfigurationError):
            deny.to_peer()
