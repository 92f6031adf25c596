from click.testing import CliRunner

import fabricdeployer.cli as cli_module


def install_fake_deployer(monkeypatch, captured, exit_code=0):
    class FakeDeployer:
        DEFAULT_CONFIGURATION = cli_module.FabricDeployer.DEFAULT_CONFIGURATION
        DEFAULT_PROFILE = cli_module.FabricDeployer.DEFAULT_PROFILE
        OVERWRITE_BEHAVIORS = cli_module.FabricDeployer.OVERWRITE_BEHAVIORS

        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            return exit_code

    monkeypatch.setattr(cli_module, "FabricDeployer", FakeDeployer)


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".fabricdeployer.yml"
    config_file.write_text(
        "profile: Cloud\n"
        "configuration: Release\n"
        "overwrite_behavior: Never\n"
        "parameters:\n"
        "  TenantName: config\n"
        "  Region: westeurope\n",
        encoding="utf-8",
    )

    captured = {}
    install_fake_deployer(monkeypatch, captured)

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--root",
            str(tmp_path),
            "--parameter",
            "TenantName=cli",
            "--overwrite-behavior",
            "Always",
            "--skip-package-validation",
        ],
    )

    assert result.exit_code == 0
    assert captured["profile"] == "Cloud"
    assert captured["configuration"] == "Release"
    assert captured["overwrite_behavior"] == "Always"
    assert captured["parameters"] == {"TenantName": "cli", "Region": "westeurope"}
    assert captured["skip_package_validation"] is True
    assert captured["use_existing_cluster_connection"] is False
    assert captured["report_file"] == str(tmp_path / "output" / "deploy-report.json")


def test_cli_defaults_without_config(tmp_path, monkeypatch):
    captured = {}
    install_fake_deployer(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--use-existing-cluster-connection"])

    assert result.exit_code == 0
    assert captured["configuration"] == "Debug"
    assert captured["profile"] == "Local.5Node"
    assert captured["overwrite_behavior"] == "SameTypeAndVersion"
    assert captured["parameters"] == {}
    assert captured["skip_package_validation"] is False
    assert captured["use_existing_cluster_connection"] is True
    assert captured["dry_run"] is False
    assert captured["request_timeout"] == 60.0


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".fabricdeployer.yml").write_text("profile: Staging.3Node\n", encoding="utf-8")

    captured = {}
    install_fake_deployer(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, [])

    assert result.exit_code == 0
    assert captured["profile"] == "Staging.3Node"


def test_cli_propagates_failure_exit_code(tmp_path, monkeypatch):
    install_fake_deployer(monkeypatch, {}, exit_code=1)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 1


def test_cli_rejects_malformed_parameter(tmp_path, monkeypatch):
    install_fake_deployer(monkeypatch, {})
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["--parameter", "NoEqualsSign"])

    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_cli_rejects_unknown_config_keys(tmp_path, monkeypatch):
    config_file = tmp_path / "deploy.yml"
    config_file.write_text("tenant: contoso\n", encoding="utf-8")
    install_fake_deployer(monkeypatch, {})

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code == 1
    assert "Unknown configuration keys: tenant" in result.output
