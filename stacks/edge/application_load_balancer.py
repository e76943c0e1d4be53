"""Application Load Balancer construct module.

Provisions the public HTTPS edge for the application:
- ACM certificate for the domain, validated through DNS records in the hosted zone
- Internet-facing ALB (ports 80/443 open) with access logs shipped to S3
- IP target group with 1-day sticky sessions, consumed by the ECS service
- HTTPS listener forwarding to the target group, HTTP listener redirecting to HTTPS
- Route 53 A/AAAA alias records pointing at the ALB
"""
from constructs import Construct
from aws_cdk import (
    Duration,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
    aws_s3 as s3,
)

HTTP = 80
HTTPS = 443


class ApplicationLoadBalancer(Construct):
    """Internet-facing, HTTPS-terminating load balancer for the app domain.

    The target group ARN is exposed for the external deployment tool, which
    registers the ECS tasks into it.
    """

    def __init__(self, scope: Construct,
            construct_id: str,
            *,
            domain_name: str,
            hosted_zone: route53.IHostedZone,
            log_bucket: s3.IBucket,
            vpc: ec2.IVpc) -> None:
        super().__init__(scope, construct_id)

        self.certificate = acm.Certificate(self, "Certificate",
            domain_name=domain_name,
            validation=acm.CertificateValidation.from_dns(hosted_zone)
        )

        self.security_group = ec2.SecurityGroup(self, "SecurityGroup",
            vpc=vpc,
            description="Security Group for Application Load Balancer"
        )
        self.security_group.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(HTTP),
            description="Allow HTTP access from anywhere"
        )
        self.security_group.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(HTTPS),
            description="Allow HTTPS access from anywhere"
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(self, "Alb",
            vpc=vpc,
            internet_facing=True,
            security_group=self.security_group,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC)
        )
        self.load_balancer.log_access_logs(log_bucket)

        self.target_group = elbv2.ApplicationTargetGroup(self, "TargetGroup",
            vpc=vpc,
            port=HTTP,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            stickiness_cookie_duration=Duration.days(1)
        )

        self.add_listeners()
        self.add_alias_records(domain_name, hosted_zone)

        self.target_group_arn = self.target_group.target_group_arn

    def add_listeners(self) -> None:
        """Attach the HTTPS listener and the HTTP listener with its redirect rule."""
        self.https_listener = self.load_balancer.add_listener("HttpsListener",
            port=HTTPS,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=[elbv2.ListenerCertificate.from_certificate_manager(self.certificate)],
            default_target_groups=[self.target_group],
            open=False
        )

        self.http_listener = self.load_balancer.add_listener("HttpListener",
            port=HTTP,
            protocol=elbv2.ApplicationProtocol.HTTP,
            default_target_groups=[self.target_group],
            open=False
        )

        # Priority 1 and "*" so the redirect wins over the default forward
        elbv2.ApplicationListenerRule(self, "HttpListenerRule",
            listener=self.http_listener,
            priority=1,
            conditions=[elbv2.ListenerCondition.path_patterns(["*"])],
            action=elbv2.ListenerAction.redirect(
                protocol="HTTPS",
                port=str(HTTPS),
                permanent=True
            )
        )

    def add_alias_records(self, domain_name: str, hosted_zone: route53.IHostedZone) -> None:
        """Point the domain at the load balancer over IPv4 and IPv6"""
        target = route53.RecordTarget.from_alias(
            route53_targets.LoadBalancerTarget(self.load_balancer)
        )
        route53.ARecord(self, "ARecord",
            zone=hosted_zone,
            record_name=domain_name,
            target=target
        )
        route53.AaaaRecord(self, "AaaaRecord",
            zone=hosted_zone,
            record_name=domain_name,
            target=target
        )
