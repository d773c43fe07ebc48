import pytest
from pydantic import ValidationError

from stack_pool.config import PoolConfig

LEGACY_ENV = [
    "DYNAMODB_TABLE_NAME",
    "REGION",
    "TEMPLATE_URL",
    "STACK_NAME_PREFIX",
    "ACCESS_CODE_POOL_SIZE",
    "TEMPLATE_PARAMETERS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in LEGACY_ENV:
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"STACK_POOL_{name}", raising=False)


@pytest.mark.unit
def test_defaults():
    config = PoolConfig()
    assert config.region == "us-east-1"
    assert config.pool_size == 60
    assert config.on_failure == "ROLLBACK"
    assert config.trigger_rule_name is None
    assert config.trigger_rule_pattern == "StackSyncScheduleRule"
    assert config.reservation_timeout_seconds == 900
    assert "CAPABILITY_IAM" in config.capabilities


@pytest.mark.unit
def test_legacy_environment_names(monkeypatch):
    monkeypatch.setenv("DYNAMODB_TABLE_NAME", "portal-stacks")
    monkeypatch.setenv("REGION", "eu-west-1")
    monkeypatch.setenv("TEMPLATE_URL", "https://bucket.s3.amazonaws.com/t.yaml")
    monkeypatch.setenv("STACK_NAME_PREFIX", "lab")
    monkeypatch.setenv("ACCESS_CODE_POOL_SIZE", "25")
    monkeypatch.setenv("TEMPLATE_PARAMETERS", '{"InstanceType": "t3.small"}')

    config = PoolConfig()

    assert config.table_name == "portal-stacks"
    assert config.region == "eu-west-1"
    assert config.template_url == "https://bucket.s3.amazonaws.com/t.yaml"
    assert config.stack_name_prefix == "lab"
    assert config.pool_size == 25
    assert config.template_parameters == {"InstanceType": "t3.small"}


@pytest.mark.unit
def test_prefixed_environment_names(monkeypatch):
    monkeypatch.setenv("STACK_POOL_TABLE_NAME", "prefixed")
    monkeypatch.setenv("STACK_POOL_SYNC_MAX_WORKERS", "2")
    config = PoolConfig()
    assert config.table_name == "prefixed"
    assert config.sync_max_workers == 2


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"template_url": "http://insecure.example.com/t.yaml"},
        {"region": "not-a-region"},
        {"stack_name_prefix": "1starts-with-digit"},
        {"stack_name_prefix": "has_underscore"},
        {"pool_size": 0},
        {"sync_max_workers": 0},
        {"delete_max_workers": 65},
        {"reservation_timeout_seconds": 10},
        {"on_failure": "EXPLODE"},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        PoolConfig(**overrides)


@pytest.mark.unit
def test_botocore_config_carries_timeouts():
    config = PoolConfig(
        connect_timeout_seconds=2, read_timeout_seconds=7, max_attempts=4
    )
    boto_config = config.botocore_config()
    assert boto_config.connect_timeout == 2
    assert boto_config.read_timeout == 7
    assert boto_config.retries == {"max_attempts": 4, "mode": "standard"}
    assert boto_config.region_name == "us-east-1"
