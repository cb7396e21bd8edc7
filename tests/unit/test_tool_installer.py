"""Unit tests for ToolInstaller."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import ToolInstallFailed
from core.services.tool_installer import CFN_SIGNAL, InstallStrategy, ToolInstaller, ToolSpec
from infrastructure.system.shell_runner import ShellResult


class TestToolInstaller:
    """Test cases for ToolInstaller."""

    def setup_method(self):
        """Set up a mocked shell."""
        self.shell = MagicMock()
        self.shell.which = MagicMock(return_value=None)
        self.shell.run = AsyncMock(return_value=ShellResult(command="cmd", exit_code=0))
        self.installer = ToolInstaller(self.shell, timeout_seconds=120)
        self.tool = ToolSpec(
            name="demo",
            locations=["demo", "/opt/demo/bin/demo"],
            strategies=[
                InstallStrategy(name="first", command="install-first"),
                InstallStrategy(name="second", command="install-second"),
            ],
        )

    @pytest.mark.asyncio
    async def test_already_installed(self):
        self.shell.which.side_effect = lambda location: "/usr/bin/demo" if location == "demo" else None

        status = await self.installer.ensure(self.tool)

        assert status.path == "/usr/bin/demo"
        assert status.installed_by is None
        self.shell.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_next_strategy(self):
        installed = []

        async def run(command, **kwargs):
            installed.append(command)
            exit_code = 1 if command == "install-first" else 0
            return ShellResult(command=command, exit_code=exit_code)

        self.shell.run.side_effect = run
        self.shell.which.side_effect = lambda location: (
            "/opt/demo/bin/demo"
            if location == "/opt/demo/bin/demo" and "install-second" in installed
            else None
        )

        status = await self.installer.ensure(self.tool)

        assert status.available
        assert status.installed_by == "second"
        assert status.attempts == ["first", "second"]

    @pytest.mark.asyncio
    async def test_success_is_judged_by_presence(self):
        self.shell.run.return_value = ShellResult(command="cmd", exit_code=1)
        self.shell.which.side_effect = [None, None, "/usr/bin/demo"]

        status = await self.installer.ensure(self.tool)

        assert status.installed_by == "first"

    @pytest.mark.asyncio
    async def test_all_strategies_exhausted(self):
        with pytest.raises(ToolInstallFailed) as exc_info:
            await self.installer.ensure(self.tool)

        assert exc_info.value.tool == "demo"
        assert exc_info.value.attempts == ["first", "second"]
        assert self.shell.run.await_count == 2

    @pytest.mark.asyncio
    async def test_post_install_runs_after_each_strategy(self):
        with pytest.raises(ToolInstallFailed):
            await self.installer.ensure(CFN_SIGNAL)

        commands = [call.args[0] for call in self.shell.run.await_args_list]
        assert commands.count(CFN_SIGNAL.post_install) == len(CFN_SIGNAL.strategies)


if __name__ == "__main__":
    pytest.main([__file__])
