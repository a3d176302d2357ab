"""
Private S3 Static Website Stack

This stack deploys a static website that is only reachable from a private
network. The solution includes:
- S3 bucket configured for static website hosting with all public access blocked
- Website content deployment into the bucket
- VPC with an S3 gateway endpoint
- Bucket policy granting read access only through the gateway endpoint
- S3 Proxy Farm (auto scaled nginx reverse proxies) in private subnets
- Private Network Load Balancer exposing the proxy farm

Architecture:
Remote network (VPN / Direct Connect) -> NLB -> nginx proxies -> S3 gateway endpoint -> S3 website
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import aws_cdk as cdk
from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_s3 as s3,
    aws_s3_deployment as s3_deployment,
)
from cdk_nag import AwsSolutionsChecks
from constructs import Construct

from s3_proxy_farm import S3ProxyFarm, S3ProxyFarmProps

logger = logging.getLogger(__name__)

DEFAULT_WEBSITE_SOURCE = Path(__file__).resolve().parent.parent / "website"


class PrivateS3StaticWebsiteStack(Stack):
    """
    CDK Stack serving a private S3 static website through the S3 Proxy Farm.
    """

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        config = self._get_configuration()

        # Private S3 static website
        self.website_bucket = self._create_website_bucket(config)

        # Proxy farm VPC
        # Use a VPC with a VPN connection or a Direct Connect to your remote network
        self.vpc, self.s3_vpc_endpoint = self._create_vpc()

        self._grant_endpoint_read_access()

        self.proxy_farm = S3ProxyFarm(
            self,
            "s3-proxy-farm",
            S3ProxyFarmProps(
                vpc=self.vpc,
                website_bucket=self.website_bucket,
                auto_scaling_group_props={
                    "max_capacity": config["max_capacity"],
                },
                allowed_cidr_ranges=config["allowed_cidr_ranges"],
                website_index_document=config["website_index_document"],
            ),
        )

        self.load_balancer = self._create_load_balancer()
        self.listener = self.proxy_farm.create_network_load_balancer_listener(
            self.load_balancer,
            port=config["listener_port"],
            protocol=elbv2.Protocol.TCP,
        )

        self._create_outputs()

        if config["enable_cdk_nag"]:
            logger.info("Enabling cdk-nag AwsSolutions checks")
            cdk.Aspects.of(self).add(AwsSolutionsChecks(verbose=True))

    def _get_configuration(self) -> Dict[str, Any]:
        """
        Get configuration values from CDK context.

        Returns:
            Dictionary containing configuration values
        """
        return {
            "allowed_cidr_ranges": _as_list(self.node.try_get_context("allowed_cidr_ranges") or ["0.0.0.0/0"]),
            "max_capacity": int(self.node.try_get_context("max_capacity") or 4),
            "website_index_document": self.node.try_get_context("website_index_document") or "index.html",
            "listener_port": int(self.node.try_get_context("listener_port") or 80),
            "website_source_path": self.node.try_get_context("website_source_path") or str(DEFAULT_WEBSITE_SOURCE),
            "enable_cdk_nag": _as_bool(self.node.try_get_context("enable_cdk_nag")),
        }

    def _create_website_bucket(self, config: Dict[str, Any]) -> s3.Bucket:
        """
        Create the website bucket and deploy its content.

        Returns:
            s3.Bucket: Website bucket with all public access blocked
        """
        bucket = s3.Bucket(
            self,
            "s3-proxy-farm-website-bucket",
            website_index_document=config["website_index_document"],
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
        )

        s3_deployment.BucketDeployment(
            self,
            "s3-proxy-farm-website-deployment",
            sources=[s3_deployment.Source.asset(config["website_source_path"])],
            destination_bucket=bucket,
        )

        return bucket

    def _create_vpc(self) -> Tuple[ec2.Vpc, ec2.GatewayVpcEndpoint]:
        """
        Create the proxy farm VPC with an S3 gateway endpoint.

        Returns:
            tuple: VPC and S3 gateway endpoint
        """
        vpc = ec2.Vpc(self, "s3-proxy-farm-vpc", max_azs=2)

        s3_vpc_endpoint = vpc.add_gateway_endpoint(
            "s3-proxy-farm-s3-vpc-endpoint",
            service=ec2.GatewayVpcEndpointAwsService.S3,
        )

        return vpc, s3_vpc_endpoint

    def _grant_endpoint_read_access(self) -> None:
        """Allow object reads only for requests coming through the S3 gateway endpoint."""
        self.website_bucket.add_to_resource_policy(
            iam.PolicyStatement(
                principals=[iam.AnyPrincipal()],
                effect=iam.Effect.ALLOW,
                actions=["s3:GetObject"],
                resources=[self.website_bucket.arn_for_objects("*")],
                conditions={
                    "StringEquals": {
                        "aws:SourceVpce": self.s3_vpc_endpoint.vpc_endpoint_id,
                    },
                },
            )
        )

    def _create_load_balancer(self) -> elbv2.NetworkLoadBalancer:
        """
        Create a private Network Load Balancer for the proxy farm.

        Returns:
            elbv2.NetworkLoadBalancer: Internal, cross-zone load balancer
        """
        return elbv2.NetworkLoadBalancer(
            self,
            "s3-proxy-farm-load-balancer",
            vpc=self.vpc,
            cross_zone_enabled=True,
            internet_facing=False,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for important resources."""

        # Use this URL to access the S3 static website from your remote network
        CfnOutput(
            self,
            "WebsiteUrl",
            value=f"http://{self.load_balancer.load_balancer_dns_name}",
            description="URL of the private static website",
        )

        CfnOutput(
            self,
            "WebsiteBucketName",
            value=self.website_bucket.bucket_name,
            description="Name of the website bucket",
        )

        CfnOutput(
            self,
            "ProxyFarmAutoScalingGroupName",
            value=self.proxy_farm.proxy_farm_asg.auto_scaling_group_name,
            description="Name of the proxy farm Auto Scaling Group",
        )


def _as_list(value: Union[str, List[str]]) -> List[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return list(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)
