"""Per-release helm invocations used as engine operations."""

from typing import List, Optional

from chartfleet.errors import ChartfleetError
from chartfleet.models import Err, Ok, ReleaseSpec
from chartfleet.services.command_runner import CommandRunner


class HelmOperation:
    """Callable operation that runs one helm command for a release.

    Failures, timeouts included, come back as ``Err`` so the engine reports
    them like any other per-release error.
    """

    SUPPORTED_OPERATIONS = ("apply", "sync", "diff", "template", "lint", "delete", "destroy")

    def __init__(
        self,
        command_runner: CommandRunner,
        operation: str,
        logger,
        helm_binary: str = "helm",
        dry_run: bool = False,
        timeout: Optional[float] = None,
    ):
        if operation not in self.SUPPORTED_OPERATIONS:
            raise ChartfleetError(
                f"Unsupported operation '{operation}'. "
                f"Supported operations: {', '.join(self.SUPPORTED_OPERATIONS)}"
            )
        self.command_runner = command_runner
        self.operation = operation
        self.logger = logger
        self.helm_binary = helm_binary
        self.dry_run = dry_run
        self.timeout = timeout

    def __call__(self, release: ReleaseSpec, worker_id: int):
        try:
            cmd = self.build_command(release)
        except ChartfleetError as exc:
            return Err(exc)

        if self.dry_run:
            self.logger.info("[dry-run] worker %d: %s", worker_id, " ".join(cmd))
            return Ok(cmd)

        self.logger.info("worker %d: running %s for release %s", worker_id, self.operation, release.id)
        try:
            self.command_runner.run(cmd, check=True, capture_output=True, timeout=self.timeout)
        except ChartfleetError as exc:
            return Err(exc)
        return Ok(cmd)

    def build_command(self, release: ReleaseSpec) -> List[str]:
        if self.operation in ("delete", "destroy"):
            return [self.helm_binary, "uninstall", release.name] + self._target_flags(release)

        if not release.chart:
            raise ChartfleetError(f"Release {release.id} does not declare a chart.")

        values_flags = []
        for values_file in release.values:
            values_flags.extend(["--values", values_file])

        if self.operation == "lint":
            return [self.helm_binary, "lint", release.chart] + values_flags

        if self.operation == "diff":
            cmd = [self.helm_binary, "diff", "upgrade", release.name, release.chart]
        elif self.operation == "template":
            cmd = [self.helm_binary, "template", release.name, release.chart]
        else:
            cmd = [self.helm_binary, "upgrade", "--install", release.name, release.chart]

        if release.version:
            cmd.extend(["--version", release.version])
        return cmd + values_flags + self._target_flags(release)

    @staticmethod
    def _target_flags(release: ReleaseSpec) -> List[str]:
        flags = []
        if release.namespace:
            flags.extend(["--namespace", release.namespace])
        if release.kube_context:
            flags.extend(["--kube-context", release.kube_context])
        return flags
