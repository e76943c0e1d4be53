"""Reader for identifiers the stack publishes to SSM Parameter Store.

When the stack is synthesized with APP_OUTPUT_MODE=parameters, the private
subnet IDs, ECS security group, target group ARN and execution role ARN are
written under a fixed path prefix instead of CloudFormation outputs. This
module reads them back and renders them as shell ``export`` lines so that
ecspresso's must_env sees them, e.g.:

    eval "$(python -m deploy.parameter_store /laravel-app)" && ecspresso deploy
"""

import logging
import os
import re
import shlex
import sys

import boto3

from stacks.app.config import (
    DEFAULT_PARAMETER_PREFIX,
    PUBLISHED_OUTPUTS,
    parse_parameter_prefix,
)

logger = logging.getLogger(__name__)


def _env_key(name: str) -> str:
    """Convert an output name to an environment variable name.

    Args:
        name: CamelCase output name, e.g. PrivateSubnetAz1.

    Returns:
        Upper snake case key, e.g. PRIVATE_SUBNET_AZ1.
    """
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).upper()


def load_published_values(prefix: str, client=None) -> dict:
    """Read every published identifier under the parameter prefix.

    Args:
        prefix: SSM path prefix the stack published to, e.g. /laravel-app.
        client: SSM client to use (default: a new boto3 client).

    Returns:
        Mapping of output name to parameter value for all PUBLISHED_OUTPUTS.

    Raises:
        ValueError: If the prefix is not a non-root absolute path.
        RuntimeError: If any published identifier is missing under the prefix.
        botocore.exceptions.ClientError: If SSM rejects the request.
    """
    prefix = parse_parameter_prefix(prefix)
    client = client or boto3.client("ssm")

    found = {}
    paginator = client.get_paginator("get_parameters_by_path")
    for page in paginator.paginate(Path=prefix, Recursive=False):
        for parameter in page["Parameters"]:
            name = parameter["Name"][len(prefix) + 1:]
            if name in PUBLISHED_OUTPUTS:
                found[name] = parameter["Value"]
            else:
                logger.debug("Ignoring unrelated parameter %s", parameter["Name"])

    missing = [name for name in PUBLISHED_OUTPUTS if name not in found]
    if missing:
        raise RuntimeError(f"Missing parameters under {prefix}: {', '.join(missing)}")
    return found


def render_env(values: dict) -> str:
    """Render identifiers as sorted ``export KEY=value`` lines, values shell-quoted."""
    lines = sorted(
        f"export {_env_key(name)}={shlex.quote(value)}" for name, value in values.items()
    )
    return "\n".join(lines)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    raw_prefix = argv[0] if argv else os.environ.get("APP_PARAMETER_PREFIX", DEFAULT_PARAMETER_PREFIX)
    print(render_env(load_published_values(raw_prefix)))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
