"""Unit tests for ShellRunner, using real short-lived processes."""

import sys

import pytest

from infrastructure.system.shell_runner import ShellRunner


class TestShellRunner:
    """Test cases for ShellRunner."""

    def setup_method(self):
        self.shell = ShellRunner()

    @pytest.mark.asyncio
    async def test_shell_string(self):
        result = await self.shell.run("echo hello && echo oops >&2")

        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.stderr.strip() == "oops"

    @pytest.mark.asyncio
    async def test_non_zero_exit_does_not_raise(self):
        result = await self.shell.run("exit 3")

        assert result.exit_code == 3
        assert not result.ok

    @pytest.mark.asyncio
    async def test_extra_environment(self):
        result = await self.shell.run('echo "$NEAR_NETWORK"', env={"NEAR_NETWORK": "testnet"})

        assert result.stdout.strip() == "testnet"

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        result = await self.shell.run(["/nonexistent/cfn-signal", "--stack", "near"])

        assert result.exit_code == ShellRunner.NOT_FOUND_EXIT_CODE

    @pytest.mark.asyncio
    async def test_timeout(self):
        result = await self.shell.run("sleep 5", timeout_seconds=0.2)

        assert result.timed_out
        assert result.exit_code == ShellRunner.TIMEOUT_EXIT_CODE

    def test_which(self):
        assert self.shell.which(sys.executable) == sys.executable
        assert self.shell.which("/nonexistent/cfn-signal") is None


if __name__ == "__main__":
    pytest.main([__file__])
