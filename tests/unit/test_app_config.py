"""Unit tests for environment-sourced AppConfig.

Covers defaults and CDK_DEFAULT_* fallbacks, APP_* overrides, repository list
parsing, .env seeding, and rejection of malformed values.
"""

import pytest

from stacks.app.config import (
    AppConfig,
    OutputMode,
    RepositorySpec,
    parse_parameter_prefix,
    parse_repositories,
)

BASE_ENV = {"CDK_DEFAULT_ACCOUNT": "111111111111", "CDK_DEFAULT_REGION": "eu-west-1"}


def _config(**overrides):
    return AppConfig.from_env(environ={**BASE_ENV, **overrides})


def test_defaults_from_cdk_environment():
    """Test unset APP_* variables fall back to CDK defaults and built-in values."""
    config = _config()
    assert config.account == "111111111111"
    assert config.region == "eu-west-1"
    assert config.stack_name == "ExampleLaravelAppStack"
    assert config.hosted_zone_name == "example.com"
    assert config.domain_name == "app.example.com"
    assert config.log_bucket_name == "example-log-bucket"
    assert config.vpc_cidr == "192.168.0.0/16"
    assert config.app_port == 8080
    assert config.output_mode is OutputMode.STACK_OUTPUTS
    assert config.parameter_prefix == "/laravel-app"
    assert [repo.id for repo in config.repositories] == ["Nginx", "AppCli", "AppServer"]


def test_app_variables_override_defaults():
    """Test APP_* variables take precedence over CDK defaults."""
    config = _config(
        APP_AWS_ACCOUNT="123456789012",
        APP_AWS_REGION="ap-northeast-1",
        APP_STACK_NAME="LaravelStack",
        APP_DOMAIN_NAME="app.example.org",
        APP_HOSTED_ZONE_NAME="example.org",
        APP_LOG_BUCKET_NAME="example-log-storage",
        APP_ECR_REPOSITORIES="Foo:laravel-app/foo",
        APP_ECS_CLUSTER_NAME="LaravelApp",
        APP_ECS_SERVICE_NAME="laravel-app",
        APP_VPC_CIDR="10.0.0.0/16",
        APP_CONTAINER_PORT="9000",
        APP_OUTPUT_MODE="Parameters",
        APP_PARAMETER_PREFIX="/ecspresso/laravel/",
    )
    assert config.account == "123456789012"
    assert config.region == "ap-northeast-1"
    assert config.stack_name == "LaravelStack"
    assert config.domain_name == "app.example.org"
    assert config.hosted_zone_name == "example.org"
    assert config.log_bucket_name == "example-log-storage"
    assert config.repositories == (RepositorySpec(id="Foo", repository_name="laravel-app/foo"),)
    assert config.cluster_name == "LaravelApp"
    assert config.service_name == "laravel-app"
    assert config.vpc_cidr == "10.0.0.0/16"
    assert config.app_port == 9000
    assert config.output_mode is OutputMode.PARAMETER_STORE
    assert config.parameter_prefix == "/ecspresso/laravel"


@pytest.mark.parametrize("environ", [
    {},
    {"CDK_DEFAULT_ACCOUNT": "111111111111"},
    {"APP_AWS_REGION": "eu-west-1"},
])
def test_missing_account_or_region_raises(environ):
    """Test synthesis cannot proceed without an account and region."""
    with pytest.raises(ValueError, match="account and region are required"):
        AppConfig.from_env(environ=environ)


def test_parse_repositories_skips_blank_entries():
    """Test whitespace and empty entries are ignored."""
    assert parse_repositories(" Nginx : repo/nginx ,, AppCli:repo/cli,") == (
        RepositorySpec(id="Nginx", repository_name="repo/nginx"),
        RepositorySpec(id="AppCli", repository_name="repo/cli"),
    )
    assert parse_repositories("") == ()


@pytest.mark.parametrize("raw", ["repo/nginx", ":repo/nginx", "Nginx:", "Nginx:repo,bad"])
def test_parse_repositories_rejects_malformed_entries(raw):
    """Test entries must be 'Id:repository-name'."""
    with pytest.raises(ValueError, match="Invalid repository entry"):
        parse_repositories(raw)


@pytest.mark.parametrize("port", ["http", "0", "65536", "-1"])
def test_invalid_container_port(port):
    """Test non-numeric and out-of-range ports are rejected."""
    with pytest.raises(ValueError, match="port"):
        _config(APP_CONTAINER_PORT=port)


def test_invalid_output_mode():
    """Test unknown output modes list the valid choices."""
    with pytest.raises(ValueError, match="outputs, parameters"):
        _config(APP_OUTPUT_MODE="both")


@pytest.mark.parametrize("prefix", ["laravel-app", "/", "//"])
def test_invalid_parameter_prefix(prefix):
    """Test the parameter prefix must be an absolute, non-root path."""
    with pytest.raises(ValueError, match="Parameter prefix"):
        _config(APP_PARAMETER_PREFIX=prefix)


def test_parse_parameter_prefix_strips_trailing_slashes():
    """Test the shared prefix rule normalizes trailing slashes."""
    assert parse_parameter_prefix("/laravel-app/") == "/laravel-app"
    assert parse_parameter_prefix("/laravel-app//") == "/laravel-app"
    assert parse_parameter_prefix("/laravel-app") == "/laravel-app"


def test_env_file_seeds_process_environment(tmp_path, monkeypatch):
    """Test a .env file fills in variables without overriding the environment."""
    # setenv first so monkeypatch restores whatever load_dotenv writes
    for key in ("APP_AWS_ACCOUNT", "APP_AWS_REGION", "APP_DOMAIN_NAME"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("APP_STACK_NAME", "FromEnvironment")
    env_file = tmp_path / ".env"
    env_file.write_text(
        "APP_AWS_ACCOUNT=222222222222\n"
        "APP_AWS_REGION=us-east-1\n"
        "APP_DOMAIN_NAME=app.dotenv.example\n"
        "APP_STACK_NAME=FromDotenv\n"
    )

    config = AppConfig.from_env(env_file=env_file)

    assert config.account == "222222222222"
    assert config.region == "us-east-1"
    assert config.domain_name == "app.dotenv.example"
    assert config.stack_name == "FromEnvironment"
