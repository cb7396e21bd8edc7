"""Local system access for the node itself."""

from .shell_runner import ShellRunner, ShellResult

__all__ = ["ShellRunner", "ShellResult"]
