"""
Test configuration command functionality
"""

import yaml
from click.testing import CliRunner

from opensearch_csv_exporter.cli.main import cli


class TestConfigCommand:
    """Test config command"""

    def test_config_help(self):
        """Test config command help display"""
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "--help"])

        assert result.exit_code == 0
        assert "Configuration management" in result.output
        assert "init" in result.output
        assert "show" in result.output
        assert "validate" in result.output

    def test_init_writes_defaults(self, config_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "init"])

        assert result.exit_code == 0, result.output
        assert config_file.exists()
        data = yaml.safe_load(config_file.read_text())
        assert data["export"]["page_size"] == 10000
        assert data["server"]["port"] == 8080

    def test_init_keeps_existing_without_force(self, config_file):
        config_file.write_text("server:\n  port: 9999\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "init"])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert "9999" in config_file.read_text()

        result = runner.invoke(cli, ["--no-color", "config", "init", "--force"])

        assert result.exit_code == 0
        assert "9999" not in config_file.read_text()

    def test_init_at_explicit_path(self, tmp_path, config_file):
        target = tmp_path / "other" / "exporter.yaml"

        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "--config", str(target), "config", "init"])

        assert result.exit_code == 0, result.output
        assert target.exists()
        assert not config_file.exists()

    def test_show_lists_settings_and_sources(self, config_file, monkeypatch):
        config_file.write_text("export:\n  page_size: 250\n")
        monkeypatch.setenv("EXPORTER_PORT", "9300")

        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "show"])

        assert result.exit_code == 0, result.output
        assert "export.page_size" in result.output
        assert "250" in result.output
        assert "9300" in result.output
        assert "environment" in result.output

    def test_show_without_file_does_not_create_it(self, config_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "show"])

        assert result.exit_code == 0
        assert "does not exist" in result.output
        assert not config_file.exists()

    def test_validate_valid_file(self, config_file):
        config_file.write_text("opensearch:\n  addresses: [https://es:9200]\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "validate"])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output

    def test_validate_invalid_file(self, config_file):
        config_file.write_text("export:\n  delimiter: ','\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "validate"])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output

    def test_validate_missing_file(self, config_file):
        runner = CliRunner()
        result = runner.invoke(cli, ["--no-color", "config", "validate"])

        assert result.exit_code == 1
        assert "not found" in result.output
