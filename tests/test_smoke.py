"""
Smoke tests — verify the package is healthy.

- Package imports successfully
- CLI entrypoint responds
- Design catalog ships with the package
"""

from click.testing import CliRunner

from siteforge import __version__
from siteforge.main import cli


class TestBootstrap:
    """Verify the package bootstrap is healthy."""

    def test_version_is_set(self):
        assert __version__
        assert isinstance(__version__, str)

    def test_cli_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_command_groups_registered(self):
        for group in ("config", "site", "release"):
            result = CliRunner().invoke(cli, [group, "--help"])
            assert result.exit_code == 0, group

    def test_catalog_packaged(self):
        from siteforge.core.data import DataRegistry

        assert DataRegistry().designs
