"""
S3 Proxy Farm construct.

Provisions an auto scaled fleet of nginx reverse proxies in front of a
privately hosted S3 static website. The website bucket is only reachable
from inside the VPC (through an S3 gateway endpoint); the proxies make it
available to the private network through a load balancer.

The construct:
- creates a security group allowing the configured CIDR ranges on the proxy port
- merges caller overrides with the default Auto Scaling Group and CPU scaling props
- renders the bootstrap script configuring nginx on each instance at launch
- attaches a CPU utilization target tracking policy
- exposes the fleet through a Network Load Balancer listener on demand
"""

import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from aws_cdk import (
    Duration,
    Names,
    Token,
    aws_autoscaling as autoscaling,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_s3 as s3,
)
from constructs import Construct

from .allow_list import AllowListRule, derive_rules
from .bootstrap import render_bootstrap_script, validate_index_document
from .errors import FleetConfigurationError
from .merge import deep_merge

logger = logging.getLogger(__name__)

RESERVED_ASG_KEYS = frozenset({"user_data"})


@dataclass(frozen=True)
class S3ProxyFarmProps:
    """
    Properties for the S3ProxyFarm construct.

    Attributes:
        vpc: VPC where the proxy farm is deployed
        website_bucket: S3 bucket hosting the static website
        auto_scaling_group_props: Overrides for the default Auto Scaling Group props
        cpu_utilization_scaling_props: Overrides for the default CPU scaling policy props
        allowed_cidr_ranges: CIDR ranges allowed to reach the proxies (default: none)
        website_index_document: Index document of the website (default: index.html)
    """

    vpc: ec2.IVpc
    website_bucket: s3.IBucket
    auto_scaling_group_props: Mapping[str, Any] = field(default_factory=dict)
    cpu_utilization_scaling_props: Mapping[str, Any] = field(default_factory=dict)
    allowed_cidr_ranges: Sequence[str] = ()
    website_index_document: Optional[str] = None


class S3ProxyFarm(Construct):
    """
    Auto scaled nginx reverse proxy farm for a private S3 static website.

    All properties are resolved once at construction. After that the farm is
    only changed by attaching load balancer listeners.
    """

    PROXY_PORT = 8080
    DEFAULT_INDEX_DOCUMENT = "index.html"
    DEFAULT_MIN_CAPACITY = 1
    DEFAULT_MAX_CAPACITY = 3
    DEFAULT_TARGET_UTILIZATION_PERCENT = 80
    DEFAULT_COOLDOWN_SECONDS = 300

    def __init__(self, scope: Construct, construct_id: str, props: S3ProxyFarmProps) -> None:
        """
        Initialize the S3 Proxy Farm.

        Args:
            scope: The scope in which to define this construct
            construct_id: The scoped construct ID
            props: Proxy farm properties

        Raises:
            FleetConfigurationError: If the properties are invalid
        """
        super().__init__(scope, construct_id)

        if props.vpc is None or props.website_bucket is None:
            raise FleetConfigurationError("Both vpc and website_bucket are required")

        self.proxy_port: int = self.PROXY_PORT
        self.website_index_document: str = validate_index_document(
            props.website_index_document or self.DEFAULT_INDEX_DOCUMENT
        )
        self.allow_rules: List[AllowListRule] = derive_rules(props.allowed_cidr_ranges or [], self.proxy_port)
        self.allowed_cidr_ranges: List[str] = [rule.source for rule in self.allow_rules]
        self.listeners: List[elbv2.NetworkListener] = []
        self._listener_ids = itertools.count(1)

        # Unknown keys would otherwise only fail inside the jsii call
        _check_override_keys(
            props.auto_scaling_group_props,
            _keyword_names(autoscaling.AutoScalingGroupProps),
            "auto_scaling_group_props",
            reserved=RESERVED_ASG_KEYS,
        )
        _check_override_keys(
            props.cpu_utilization_scaling_props,
            _keyword_names(autoscaling.CpuUtilizationScalingProps),
            "cpu_utilization_scaling_props",
        )

        self.bootstrap_script: str = render_bootstrap_script(
            port=self.proxy_port,
            rules=self.allow_rules,
            index_document=self.website_index_document,
            backend_base_url=props.website_bucket.bucket_website_url,
        )

        self.proxy_farm_security_group = self._create_security_group(props.vpc)

        self.auto_scaling_group_config = self._resolve_auto_scaling_group_config(props)
        self.scaling_policy_config = self._resolve_scaling_policy_config(props)

        self.proxy_farm_asg = autoscaling.AutoScalingGroup(
            self,
            "autoscaling-group",
            user_data=ec2.UserData.custom(self.bootstrap_script),
            **self.auto_scaling_group_config,
        )

        self.scaling_policy = self.proxy_farm_asg.scale_on_cpu_utilization(
            "scaling-policy",
            **self.scaling_policy_config,
        )

        logger.info(
            f"Composed proxy farm '{construct_id}' with {len(self.allow_rules)} allowed CIDR ranges, "
            f"index document '{self.website_index_document}', capacity "
            f"{self.auto_scaling_group_config.get('min_capacity')}-"
            f"{self.auto_scaling_group_config.get('max_capacity')}"
        )

    def _create_security_group(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        """
        Create the proxy farm security group.

        Returns:
            ec2.SecurityGroup allowing the configured CIDR ranges on the proxy port
        """
        security_group = ec2.SecurityGroup(
            self,
            "autoscaling-group-security-group",
            vpc=vpc,
            description="Security group for the S3 proxy farm",
            allow_all_outbound=True,
        )

        for rule in self.allow_rules:
            security_group.add_ingress_rule(
                peer=rule.to_peer(),
                connection=ec2.Port.tcp(rule.port),
                description="allow proxy access from CIDR range",
            )

        return security_group

    def _resolve_auto_scaling_group_config(self, props: S3ProxyFarmProps) -> Dict[str, Any]:
        defaults = {
            "vpc": props.vpc,
            "instance_type": ec2.InstanceType.of(ec2.InstanceClass.BURSTABLE2, ec2.InstanceSize.MICRO),
            "machine_image": ec2.MachineImage.latest_amazon_linux2(),
            "associate_public_ip_address": False,
            "security_group": self.proxy_farm_security_group,
            "vpc_subnets": {
                "subnet_type": ec2.SubnetType.PRIVATE_WITH_EGRESS,
            },
            "min_capacity": self.DEFAULT_MIN_CAPACITY,
            "max_capacity": self.DEFAULT_MAX_CAPACITY,
        }
        config = deep_merge(defaults, props.auto_scaling_group_props)

        if isinstance(config.get("vpc_subnets"), Mapping):
            config["vpc_subnets"] = ec2.SubnetSelection(**config["vpc_subnets"])

        _check_capacity(config)
        logger.debug(f"Resolved auto scaling group config: {sorted(config)}")
        return config

    def _resolve_scaling_policy_config(self, props: S3ProxyFarmProps) -> Dict[str, Any]:
        defaults = {
            "target_utilization_percent": self.DEFAULT_TARGET_UTILIZATION_PERCENT,
            "cooldown": Duration.seconds(self.DEFAULT_COOLDOWN_SECONDS),
        }
        config = deep_merge(defaults, props.cpu_utilization_scaling_props)

        target = config["target_utilization_percent"]
        if not Token.is_unresolved(target) and not 0 < target <= 100:
            raise FleetConfigurationError(
                f"target_utilization_percent must be in (0, 100], got {target}"
            )
        logger.debug(f"Resolved scaling policy config: target {target}%")
        return config

    def create_network_load_balancer_listener(
        self,
        lb: elbv2.INetworkLoadBalancer,
        *,
        port: int,
        protocol: elbv2.Protocol = elbv2.Protocol.TCP,
        **listener_props: Any,
    ) -> elbv2.NetworkListener:
        """
        Expose the proxy farm using a Network Load Balancer.

        Each call adds a new listener whose only target is the proxy farm
        on the proxy port, whatever the listener port.

        Args:
            lb: Network Load Balancer to add the listener to
            port: Listener port
            protocol: Listener protocol
            **listener_props: Additional BaseNetworkListenerProps

        Returns:
            elbv2.NetworkListener: The created listener
        """
        # Listeners live under the load balancer, so node.id alone can collide across farms
        listener_id = f"{Names.unique_id(self)}-listener-{next(self._listener_ids)}"
        listener = lb.add_listener(listener_id, port=port, protocol=protocol, **listener_props)

        listener.add_targets(
            f"{listener_id}-targets",
            port=self.proxy_port,
            targets=[self.proxy_farm_asg],
        )
        self.listeners.append(listener)

        logger.info(f"Attached listener '{listener_id}' on port {port} to proxy farm '{self.node.id}'")
        return listener


def _keyword_names(props_type: type) -> FrozenSet[str]:
    """Keyword argument names accepted by a jsii struct type."""
    try:
        parameters = inspect.signature(props_type.__init__).parameters.values()
    except (TypeError, ValueError):
        return frozenset()
    return frozenset(
        parameter.name for parameter in parameters if parameter.kind is inspect.Parameter.KEYWORD_ONLY
    )


def _check_override_keys(
    overrides: Optional[Mapping[str, Any]],
    allowed: FrozenSet[str],
    name: str,
    reserved: FrozenSet[str] = frozenset(),
) -> None:
    if overrides is None:
        return
    if not isinstance(overrides, Mapping):
        raise FleetConfigurationError(f"{name} must be a mapping, got {type(overrides).__name__}")

    reserved_keys = sorted(reserved.intersection(overrides))
    if reserved_keys:
        raise FleetConfigurationError(f"{name} cannot set {', '.join(reserved_keys)}; managed by the proxy farm")

    # An empty signature means the props type could not be introspected
    unknown = sorted(set(overrides) - allowed) if allowed else []
    if unknown:
        raise FleetConfigurationError(f"Unknown keys in {name}: {', '.join(unknown)}")


def _check_capacity(config: Mapping[str, Any]) -> None:
    bounds = [config.get(key) for key in ("min_capacity", "desired_capacity", "max_capacity")]
    concrete = [value for value in bounds if value is not None and not Token.is_unresolved(value)]
    if any(value < 0 for value in concrete):
        raise FleetConfigurationError(f"Capacity bounds must not be negative: {bounds}")
    if concrete != sorted(concrete):
        raise FleetConfigurationError(
            "Capacity bounds must satisfy min_capacity <= desired_capacity <= max_capacity, "
            f"got min={bounds[0]} desired={bounds[1]} max={bounds[2]}"
        )
