"""Environment-sourced configuration for the Laravel app infrastructure.

Settings are read from the process environment, optionally seeded from a
``.env`` file next to the CDK app. Every setting has a default so that
``cdk synth`` works against the CDK CLI's default account and region:
- APP_AWS_ACCOUNT / APP_AWS_REGION fall back to CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION
- APP_ECR_REPOSITORIES is a comma separated list of ``Id:repository-name`` entries
- APP_OUTPUT_MODE selects where identifiers are published (``outputs`` or ``parameters``)
"""
import dataclasses
import enum
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_STACK_NAME = "ExampleLaravelAppStack"
DEFAULT_HOSTED_ZONE_NAME = "example.com"
DEFAULT_DOMAIN_NAME = "app.example.com"
DEFAULT_LOG_BUCKET_NAME = "example-log-bucket"
DEFAULT_CLUSTER_NAME = "example-laravel-app-cluster"
DEFAULT_SERVICE_NAME = "example-laravel-app-service"
DEFAULT_VPC_CIDR = "192.168.0.0/16"
DEFAULT_APP_PORT = 8080
DEFAULT_PARAMETER_PREFIX = "/laravel-app"
DEFAULT_REPOSITORIES = ",".join([
    "Nginx:aws-cdk-ecspresso-laravel-example-2024/nginx-prod",
    "AppCli:aws-cdk-ecspresso-laravel-example-2024/app-cli-prod",
    "AppServer:aws-cdk-ecspresso-laravel-example-2024/app-server-prod",
])

# Output names, also the last segment of the SSM parameter names
PUBLISHED_OUTPUTS = (
    "PrivateSubnetAz1",
    "PrivateSubnetAz2",
    "EcsSecurityGroupId",
    "AlbTargetGroupArn",
    "EcsTaskExecutionRoleArn",
)


class OutputMode(enum.Enum):
    """Where the stack publishes identifiers for the deployment tool."""

    STACK_OUTPUTS = "outputs"
    PARAMETER_STORE = "parameters"


@dataclasses.dataclass(frozen=True)
class RepositorySpec:
    id: str
    repository_name: str


@dataclasses.dataclass(frozen=True)
class AppConfig:
    account: str
    region: str
    stack_name: str = DEFAULT_STACK_NAME
    hosted_zone_name: str = DEFAULT_HOSTED_ZONE_NAME
    domain_name: str = DEFAULT_DOMAIN_NAME
    log_bucket_name: str = DEFAULT_LOG_BUCKET_NAME
    repositories: Tuple[RepositorySpec, ...] = ()
    cluster_name: str = DEFAULT_CLUSTER_NAME
    service_name: str = DEFAULT_SERVICE_NAME
    vpc_cidr: str = DEFAULT_VPC_CIDR
    app_port: int = DEFAULT_APP_PORT
    output_mode: OutputMode = OutputMode.STACK_OUTPUTS
    parameter_prefix: str = DEFAULT_PARAMETER_PREFIX

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
            env_file: Optional[Path] = None) -> "AppConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``. When omitted the
                process environment is used, after seeding it from ``env_file``.
            env_file: ``.env`` file to load (default: next to ``app.py``).
                Variables already set in the environment win.

        Raises:
            ValueError: If account/region cannot be resolved or a value is malformed.
        """
        if environ is None:
            env_path = env_file or DEFAULT_ENV_FILE
            if load_dotenv(env_path):
                logger.info("Loaded environment overrides from %s", env_path)
            environ = os.environ

        account = environ.get("APP_AWS_ACCOUNT") or environ.get("CDK_DEFAULT_ACCOUNT")
        region = environ.get("APP_AWS_REGION") or environ.get("CDK_DEFAULT_REGION")
        if not account or not region:
            raise ValueError(
                "AWS account and region are required: set APP_AWS_ACCOUNT/APP_AWS_REGION "
                "or run through the CDK CLI so CDK_DEFAULT_ACCOUNT/CDK_DEFAULT_REGION are set"
            )

        return cls(
            account=account,
            region=region,
            stack_name=environ.get("APP_STACK_NAME") or DEFAULT_STACK_NAME,
            hosted_zone_name=environ.get("APP_HOSTED_ZONE_NAME") or DEFAULT_HOSTED_ZONE_NAME,
            domain_name=environ.get("APP_DOMAIN_NAME") or DEFAULT_DOMAIN_NAME,
            log_bucket_name=environ.get("APP_LOG_BUCKET_NAME") or DEFAULT_LOG_BUCKET_NAME,
            repositories=parse_repositories(
                environ.get("APP_ECR_REPOSITORIES") or DEFAULT_REPOSITORIES
            ),
            cluster_name=environ.get("APP_ECS_CLUSTER_NAME") or DEFAULT_CLUSTER_NAME,
            service_name=environ.get("APP_ECS_SERVICE_NAME") or DEFAULT_SERVICE_NAME,
            vpc_cidr=environ.get("APP_VPC_CIDR") or DEFAULT_VPC_CIDR,
            app_port=_parse_port(environ.get("APP_CONTAINER_PORT"), DEFAULT_APP_PORT),
            output_mode=_parse_output_mode(environ.get("APP_OUTPUT_MODE")),
            parameter_prefix=parse_parameter_prefix(
                environ.get("APP_PARAMETER_PREFIX") or DEFAULT_PARAMETER_PREFIX
            ),
        )


def parse_repositories(raw: str) -> Tuple[RepositorySpec, ...]:
    """Parse ``Id:name,Id:name`` into repository specs, skipping blank entries."""
    repositories = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        repo_id, sep, name = entry.partition(":")
        repo_id, name = repo_id.strip(), name.strip()
        if not sep or not repo_id or not name:
            raise ValueError(f"Invalid repository entry '{entry}', expected 'Id:repository-name'")
        repositories.append(RepositorySpec(id=repo_id, repository_name=name))
    return tuple(repositories)


def _parse_port(raw: Optional[str], default: int) -> int:
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid container port: {raw}") from e
    if not 0 < port < 65536:
        raise ValueError(f"Container port out of range: {port}")
    return port


def _parse_output_mode(raw: Optional[str]) -> OutputMode:
    if not raw:
        return OutputMode.STACK_OUTPUTS
    try:
        return OutputMode(raw.strip().lower())
    except ValueError as e:
        choices = ", ".join(mode.value for mode in OutputMode)
        raise ValueError(f"Invalid output mode '{raw}', expected one of: {choices}") from e


def parse_parameter_prefix(raw: str) -> str:
    """Validate an SSM path prefix and strip trailing slashes."""
    prefix = raw.rstrip("/")
    if not raw.startswith("/") or not prefix:
        raise ValueError(f"Parameter prefix must be a non-root path starting with '/': {raw}")
    return prefix
