"""Laravel app stack module.

Assembles everything the containerized Laravel app needs before ecspresso
deploys the ECS service on top of it:
- Route 53 hosted zone lookup and the S3 bucket receiving ALB access logs
- Two-AZ VPC with public and private (NAT egress) subnets
- HTTPS Application Load Balancer (see stacks.edge.application_load_balancer)
- ECR repositories, ECS cluster, task execution role and CloudWatch log groups
- Security group for the ECS tasks, reachable only from the ALB
- Published identifiers for the deployment tool (CloudFormation outputs or SSM parameters)
"""
import ipaddress
from typing import Sequence

from constructs import Construct
from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    Tags,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_iam as iam,
    aws_logs as logs,
    aws_route53 as route53,
    aws_s3 as s3,
    aws_ssm as ssm,
)

from stacks.app.config import PUBLISHED_OUTPUTS, OutputMode, RepositorySpec
from stacks.edge.application_load_balancer import ApplicationLoadBalancer

EXPECTED_PRIVATE_SUBNETS = 2
MAX_IMAGE_COUNT = 10
LOG_BUCKET_EXPIRATION_DAYS = 365
LOG_CONTAINERS = ("nginx", "app-server", "app-batch")


class LaravelAppStack(Stack):
    """CDK Stack for the Laravel app's shared infrastructure.

    ECS services and task definitions are not declared here: they are owned
    by ecspresso, which reads the identifiers this stack publishes.
    """

    def __init__(self, scope: Construct,
            construct_id: str,
            *,
            domain_name: str,
            hosted_zone_name: str,
            repositories: Sequence[RepositorySpec],
            log_bucket_name: str,
            cluster_name: str,
            service_name: str,
            vpc_cidr: str,
            max_azs: int = 2,
            app_port: int = 8080,
            output_mode: OutputMode = OutputMode.STACK_OUTPUTS,
            parameter_prefix: str = "/laravel-app",
            **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        try:
            ipaddress.ip_network(vpc_cidr)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR block: {vpc_cidr}") from e

        self.hosted_zone = route53.HostedZone.from_lookup(self, "HostedZone",
            domain_name=hosted_zone_name
        )

        self.log_bucket = s3.Bucket(self, "LogBucket",
            bucket_name=log_bucket_name,
            lifecycle_rules=[
                s3.LifecycleRule(expiration=Duration.days(LOG_BUCKET_EXPIRATION_DAYS))
            ]
        )

        self.vpc = ec2.Vpc(self, "Vpc",
            ip_addresses=ec2.IpAddresses.cidr(vpc_cidr),
            max_azs=max_azs,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24
                ),
                ec2.SubnetConfiguration(
                    name="Private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=24
                )
            ]
        )
        private_subnet_ids = [subnet.subnet_id for subnet in self.vpc.private_subnets]
        if len(private_subnet_ids) != EXPECTED_PRIVATE_SUBNETS:
            raise ValueError(
                f"Unexpected number of private subnets: expected {EXPECTED_PRIVATE_SUBNETS}, "
                f"found {len(private_subnet_ids)}"
            )

        self.alb = ApplicationLoadBalancer(self, "Alb",
            domain_name=domain_name,
            hosted_zone=self.hosted_zone,
            log_bucket=self.log_bucket,
            vpc=self.vpc
        )

        self.repositories = [self.add_repository(spec) for spec in repositories]

        self.cluster = ecs.Cluster(self, "EcsCluster",
            cluster_name=cluster_name,
            vpc=self.vpc
        )

        self.task_execution_role = iam.Role(self, "EcsTaskExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonECSTaskExecutionRolePolicy"
                )
            ]
        )
        self.add_log_groups(service_name)

        self.ecs_security_group = ec2.SecurityGroup(self, "EcsSecurityGroup",
            vpc=self.vpc,
            description="Security Group for ECS tasks"
        )
        self.ecs_security_group.add_ingress_rule(
            peer=self.alb.security_group,
            connection=ec2.Port.tcp(app_port),
            description=f"Allow traffic from ALB on app port {app_port}"
        )

        self.publish({
            "PrivateSubnetAz1": private_subnet_ids[0],
            "PrivateSubnetAz2": private_subnet_ids[1],
            "EcsSecurityGroupId": self.ecs_security_group.security_group_id,
            "AlbTargetGroupArn": self.alb.target_group_arn,
            "EcsTaskExecutionRoleArn": self.task_execution_role.role_arn,
        }, output_mode, parameter_prefix)

        self.resource_tags(service_name)

    def add_repository(self, spec: RepositorySpec) -> ecr.Repository:
        """Create an ECR repository keeping only the latest images"""
        return ecr.Repository(self, f"Ecr{spec.id}",
            repository_name=spec.repository_name,
            lifecycle_rules=[
                ecr.LifecycleRule(
                    description=f"hold {MAX_IMAGE_COUNT} images",
                    max_image_count=MAX_IMAGE_COUNT
                )
            ]
        )

    def add_log_groups(self, service_name: str) -> None:
        """Create one log group per container of the ECS service"""
        self.log_groups = {}
        for container in LOG_CONTAINERS:
            logical_id = "".join(part.capitalize() for part in container.split("-"))
            self.log_groups[container] = logs.LogGroup(self, f"Ecs{logical_id}LogGroup",
                log_group_name=f"/ecs/{service_name}/{container}",
                retention=logs.RetentionDays.TEN_YEARS
            )

    def publish(self, values: dict, output_mode: OutputMode, parameter_prefix: str) -> None:
        """Publish identifiers either as stack outputs or as SSM parameters, never both.

        Args:
            values: Output name to value, keyed by the names in PUBLISHED_OUTPUTS.
            output_mode: Publication target.
            parameter_prefix: SSM path prefix used in parameter-store mode.
        """
        for name in PUBLISHED_OUTPUTS:
            if output_mode is OutputMode.PARAMETER_STORE:
                ssm.StringParameter(self, f"{name}Parameter",
                    parameter_name=f"{parameter_prefix}/{name}",
                    string_value=values[name]
                )
            else:
                CfnOutput(self, name, value=values[name])

    def resource_tags(self, service_name: str) -> None:
        """Apply resource tags"""
        Tags.of(self).add("Project", service_name)
        Tags.of(self).add("ManagedBy", "CDK")
