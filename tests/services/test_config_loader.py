import pytest

from fabricdeployer.errors import DeployerError
from fabricdeployer.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text(
        "profile: Cloud\n"
        "configuration: Release\n"
        "parameters:\n"
        "  TenantName: contoso\n"
        "request_timeout: 30\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["profile"] == "Cloud"
    assert loaded["configuration"] == "Release"
    assert loaded["parameters"] == {"TenantName": "contoso"}
    assert loaded["request_timeout"] == 30


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(DeployerError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_parameters(tmp_path):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text("parameters:\n  - TenantName\n", encoding="utf-8")

    with pytest.raises(DeployerError, match="'parameters' must be a mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_reports_missing_file(tmp_path):
    with pytest.raises(DeployerError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "absent.yml"))


def test_config_loader_rejects_unknown_overwrite_behavior(tmp_path):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text("overwrite_behavior: Sometimes\n", encoding="utf-8")

    with pytest.raises(DeployerError, match="must be one of: Never, Always, SameTypeAndVersion"):
        ConfigLoader().load(str(config_file))


def test_config_loader_rejects_non_boolean_flags(tmp_path):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text("skip_package_validation: 'no'\n", encoding="utf-8")

    with pytest.raises(DeployerError, match="'skip_package_validation' must be true or false"):
        ConfigLoader().load(str(config_file))


@pytest.mark.parametrize("value", ["0", "-5", "soon"])
def test_config_loader_rejects_invalid_request_timeout(tmp_path, value):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text(f"request_timeout: {value}\n", encoding="utf-8")

    with pytest.raises(DeployerError, match="positive number of seconds"):
        ConfigLoader().load(str(config_file))
