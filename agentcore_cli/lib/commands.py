"""Subprocess execution for the CDK toolkit."""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """External command execution error."""

    pass


@dataclass
class CommandResult:
    """Result of a subprocess command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def check_command_exists(cmd: str) -> bool:
    """Check if a command is available in PATH."""
    return shutil.which(cmd) is not None


def run_command(
    cmd: list[str],
    env: dict[str, str] | None = None,
    cwd: Path | None = None,
    capture_output: bool = True,
) -> CommandResult:
    """Run a subprocess command."""
    full_env = {**os.environ, **(env or {})}
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)

    result = subprocess.run(
        cmd,
        env=full_env,
        cwd=cwd,
        capture_output=capture_output,
        text=True,
    )

    return CommandResult(
        returncode=result.returncode,
        stdout=result.stdout if capture_output else "",
        stderr=result.stderr if capture_output else "",
    )


class CdkToolkit:
    """
    Runs `cdk` commands inside the project's CDK app directory.

    Stack selection always passes full stack names. CloudFormation stack
    names cannot contain glob characters, so each pattern matches exactly one
    stack.
    """

    def __init__(self, project_dir: Path, profile: str | None = None):
        self.project_dir = Path(project_dir)
        self.profile = profile

    def _env(self) -> dict[str, str]:
        env = {}
        if self.profile:
            env["AWS_PROFILE"] = self.profile
        return env

    def initialize(self) -> None:
        if not check_command_exists("cdk"):
            raise CommandError(
                "AWS CDK CLI not found. Install it globally with: npm install -g aws-cdk"
            )

    def deploy(self, stack_name: str, context: dict[str, str] | None = None) -> None:
        """Deploy a stack, streaming CDK output to the terminal."""
        cmd = ["cdk", "deploy", stack_name, "--require-approval", "never"]
        for key, value in (context or {}).items():
            cmd.extend(["--context", f"{key}={value}"])

        # Don't capture output so user sees progress
        result = run_command(cmd, env=self._env(), cwd=self.project_dir, capture_output=False)
        if not result.success:
            raise CommandError(f"cdk deploy {stack_name} failed (exit code {result.returncode})")

    def destroy(self, stack_names: list[str]) -> None:
        """Destroy exactly the named stacks."""
        cmd = ["cdk", "destroy", *stack_names, "--force"]
        result = run_command(cmd, env=self._env(), cwd=self.project_dir)
        if not result.success:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise CommandError(f"cdk destroy {' '.join(stack_names)} failed: {detail}")
