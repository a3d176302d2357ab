#!/usr/bin/env python3
"""
CDK Python Application for a Private S3 Static Website

This application serves an S3 hosted static website to a private network
without making the bucket publicly reachable. It deploys:
- S3 website bucket reachable only through an S3 gateway VPC endpoint
- Auto scaled fleet of nginx reverse proxies (S3 Proxy Farm)
- Private Network Load Balancer in front of the proxy farm

Author: S3 Proxy Farm Maintainers
Version: 1.0
"""

import logging
import os

import aws_cdk as cdk

from stacks.private_static_website_stack import PrivateS3StaticWebsiteStack


def main() -> None:
    """
    Main application entry point.

    Creates the private static website stack and synthesizes the app.
    """
    app = cdk.App()

    log_level = str(app.node.try_get_context("log_level") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(levelname)s: %(message)s")

    # Get configuration from context or environment
    stack_name = app.node.try_get_context("stack_name") or "PrivateS3StaticWebsiteStack"
    env = cdk.Environment(
        account=app.node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=app.node.try_get_context("region") or os.environ.get("CDK_DEFAULT_REGION") or "us-east-1",
    )

    PrivateS3StaticWebsiteStack(
        app,
        stack_name,
        env=env,
        description="Private S3 static website served through an auto scaled reverse proxy farm",
        tags={
            "Project": "S3ProxyFarm",
            "ManagedBy": "AWS-CDK",
        },
    )

    app.synth()


if __name__ == "__main__":
    main()
