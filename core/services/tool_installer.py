"""Installation of the client tools the bootstrap agent depends on."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.exceptions import ToolInstallFailed
from infrastructure.system.shell_runner import ShellRunner


CFN_BOOTSTRAP_URL = (
    "https://s3.amazonaws.com/cloudformation-examples/aws-cfn-bootstrap-py3-latest.tar.gz"
)


@dataclass
class InstallStrategy:
    """One way of installing a tool, as a shell snippet."""
    name: str
    command: str


@dataclass
class ToolSpec:
    """A required tool: where it may live and how to install it, in order of preference."""
    name: str
    locations: List[str]
    strategies: List[InstallStrategy]
    post_install: Optional[str] = None


CFN_SIGNAL = ToolSpec(
    name="cfn-signal",
    locations=["cfn-signal", "/usr/local/bin/cfn-signal", "/opt/aws/bin/cfn-signal"],
    strategies=[
        InstallStrategy(
            name="pip3-tarball",
            command=(
                "apt-get install -y python3-pip; "
                f"pip3 install --break-system-packages {CFN_BOOTSTRAP_URL}"
            ),
        ),
        InstallStrategy(
            name="setup-py",
            command=(
                f"cd /tmp && curl -sSfO {CFN_BOOTSTRAP_URL} "
                "&& tar -xzf aws-cfn-bootstrap-py3-latest.tar.gz "
                "&& cd aws-cfn-bootstrap-*/ && python3 setup.py install"
            ),
        ),
    ],
    post_install="mkdir -p /opt/aws/bin && ln -sf /usr/local/bin/cfn-signal /opt/aws/bin/cfn-signal",
)

AWS_CLI = ToolSpec(
    name="aws",
    locations=["aws", "/usr/local/bin/aws"],
    strategies=[
        InstallStrategy(
            name="awscli-v2-bundle",
            command=(
                "apt-get install -y unzip; "
                "cd /tmp && curl -sSf \"https://awscli.amazonaws.com/awscli-exe-linux-$(uname -m).zip\" "
                "-o awscliv2.zip && unzip -qo awscliv2.zip && ./aws/install --update"
            ),
        ),
        InstallStrategy(
            name="pip3-awscli",
            command="pip3 install --break-system-packages awscli",
        ),
    ],
)

DEFAULT_TOOLS = [CFN_SIGNAL, AWS_CLI]


@dataclass
class ToolStatus:
    """Result of ensuring one tool."""
    name: str
    path: Optional[str] = None
    installed_by: Optional[str] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.path is not None


class ToolInstaller:
    """Makes sure each tool is present, trying its install strategies in order.

    A strategy counts as successful when the tool can be found afterwards,
    whatever the installer's own exit code was.
    """

    def __init__(self, shell: ShellRunner, timeout_seconds: int = 900):
        self.shell = shell
        self.timeout_seconds = timeout_seconds
        self.logger = logging.getLogger(__name__)

    def locate(self, tool: ToolSpec) -> Optional[str]:
        """First location at which the tool is executable."""
        for location in tool.locations:
            path = self.shell.which(location)
            if path:
                return path
        return None

    async def ensure(self, tool: ToolSpec) -> ToolStatus:
        """Return the tool's status, installing it if missing.

        Raises:
            ToolInstallFailed: Every strategy ran and the tool is still missing
        """
        status = ToolStatus(name=tool.name, path=self.locate(tool))
        if status.available:
            self.logger.info(f"{tool.name} already available at {status.path}")
            return status

        self.logger.info(f"{tool.name} not found, installing")

        for strategy in tool.strategies:
            status.attempts.append(strategy.name)
            result = await self.shell.run(strategy.command, timeout_seconds=self.timeout_seconds)
            if not result.ok:
                self.logger.warning(
                    f"{tool.name} install via {strategy.name} exited {result.exit_code}"
                )

            if tool.post_install:
                await self.shell.run(tool.post_install, timeout_seconds=60)

            status.path = self.locate(tool)
            if status.available:
                status.installed_by = strategy.name
                self.logger.info(f"Installed {tool.name} via {strategy.name} at {status.path}")
                return status

        raise ToolInstallFailed(tool.name, status.attempts)
