#!/usr/bin/env python3
"""CDK application entrypoint.

Synthesizes the LaravelAppStack: VPC, HTTPS Application Load Balancer, ECR
repositories, ECS cluster and the identifiers ecspresso needs to deploy the
service. Configuration comes from APP_* environment variables (optionally via
a .env file), see stacks/app/config.py.
"""

import aws_cdk as cdk
from stacks.app.config import AppConfig
from stacks.app.laravel_app_stack import LaravelAppStack

app = cdk.App()

config = AppConfig.from_env()

env = cdk.Environment(
    account=config.account,
    region=config.region
)

print(f"Synthesizing {config.stack_name} (Account: {env.account}, Region: {env.region}, "
      f"Outputs: {config.output_mode.value})")

LaravelAppStack(app, config.stack_name,
    domain_name=config.domain_name,
    hosted_zone_name=config.hosted_zone_name,
    repositories=config.repositories,
    log_bucket_name=config.log_bucket_name,
    cluster_name=config.cluster_name,
    service_name=config.service_name,
    vpc_cidr=config.vpc_cidr,
    app_port=config.app_port,
    output_mode=config.output_mode,
    parameter_prefix=config.parameter_prefix,
    env=env
)

app.synth()
