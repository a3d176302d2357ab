"""
Unit tests for the Private S3 Static Website Stack.

These tests verify that the stack wires the website bucket, the S3 gateway
endpoint, the proxy farm and the network load balancer together.
"""

import aws_cdk as cdk
import pytest
from aws_cdk import assertions

from stacks.private_static_website_stack import PrivateS3StaticWebsiteStack


class TestPrivateS3StaticWebsiteStack:
    """Test suite for the Private S3 Static Website Stack."""

    @pytest.fixture
    def stack(self) -> PrivateS3StaticWebsiteStack:
        """Create a test stack instance."""
        app = cdk.App()
        return PrivateS3StaticWebsiteStack(
            app,
            "TestStack",
            env=cdk.Environment(account="123456789012", region="us-east-1"),
        )

    @pytest.fixture
    def template(self, stack: PrivateS3StaticWebsiteStack) -> assertions.Template:
        return assertions.Template.from_stack(stack)

    def test_website_bucket(self, template: assertions.Template) -> None:
        """Test that the website bucket blocks all public access."""
        template.has_resource_properties("AWS::S3::Bucket", {
            "WebsiteConfiguration": {"IndexDocument": "index.html"},
            "PublicAccessBlockConfiguration": {
                "BlockPublicAcls": True,
                "BlockPublicPolicy": True,
                "IgnorePublicAcls": True,
                "RestrictPublicBuckets": True,
            },
        })

    def test_s3_gateway_endpoint(self, template: assertions.Template) -> None:
        """Test that the VPC has an S3 gateway endpoint."""
        template.has_resource_properties("AWS::EC2::VPCEndpoint", {
            "VpcEndpointType": "Gateway",
            "ServiceName": assertions.Match.any_value(),
        })

    def test_bucket_policy_scoped_to_endpoint(self, template: assertions.Template) -> None:
        """Test that object reads are only allowed through the VPC endpoint."""
        template.has_resource_properties("AWS::S3::BucketPolicy", {
            "PolicyDocument": {
                "Statement": assertions.Match.array_with([
                    assertions.Match.object_like({
                        "Action": "s3:GetObject",
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Condition": {
                            "StringEquals": {
                                "aws:SourceVpce": assertions.Match.any_value(),
                            },
                        },
                    }),
                ]),
            },
        })

    def test_proxy_farm_defaults_from_context(self, stack: PrivateS3StaticWebsiteStack, template: assertions.Template) -> None:
        """Test that the proxy farm uses the stack configuration."""
        template.has_resource_properties("AWS::AutoScaling::AutoScalingGroup", {
            "MinSize": "1",
            "MaxSize": "4",
        })
        template.has_resource_properties("AWS::EC2::SecurityGroup", {
            "SecurityGroupIngress": [
                assertions.Match.object_like({
                    "CidrIp": "0.0.0.0/0",
                    "FromPort": 8080,
                    "ToPort": 8080,
                }),
            ],
        })
        assert stack.proxy_farm.allowed_cidr_ranges == ["0.0.0.0/0"]

    def test_private_network_load_balancer(self, template: assertions.Template) -> None:
        """Test that the load balancer is internal and forwards to the proxy port."""
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::LoadBalancer", {
            "Type": "network",
            "Scheme": "internal",
        })
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {
            "Port": 80,
            "Protocol": "TCP",
        })
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::TargetGroup", {
            "Port": 8080,
            "Protocol": "TCP",
        })

    def test_outputs(self, template: assertions.Template) -> None:
        """Test that the website URL and resource names are exported."""
        template.has_output("WebsiteUrl", {})
        template.has_output("WebsiteBucketName", {})
        template.has_output("ProxyFarmAutoScalingGroupName", {})

    def test_context_overrides(self) -> None:
        """Test that CDK context configures the farm and the listener."""
        app = cdk.App(context={
            "allowed_cidr_ranges": "10.0.128.0/18, 10.0.192.0/18",
            "max_capacity": "6",
            "listener_port": 8000,
            "website_index_document": "home.html",
        })
        stack = PrivateS3StaticWebsiteStack(app, "ContextStack")

        template = assertions.Template.from_stack(stack)

        template.has_resource_properties("AWS::AutoScaling::AutoScalingGroup", {"MaxSize": "6"})
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {"Port": 8000})
        template.has_resource_properties("AWS::S3::Bucket", {
            "WebsiteConfiguration": {"IndexDocument": "home.html"},
        })
        assert stack.proxy_farm.allowed_cidr_ranges == ["10.0.128.0/18", "10.0.192.0/18"]
        assert "home.html" in stack.proxy_farm.bootstrap_script
