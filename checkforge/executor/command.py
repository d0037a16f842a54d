import logging
import os
import subprocess
import time
from dataclasses import dataclass

from checkforge.config import CheckConfig, SuiteConfig
from checkforge.status import CRITICAL, OK

from .state import CheckResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandCheck:
    config: CheckConfig

    def check(self) -> CheckResult:
        cfg = self.config
        start = time.monotonic()
        proc = subprocess.run(
            cfg.command,
            shell=True,
            cwd=cfg.working_dir or None,
            env={**os.environ, **cfg.env},
            capture_output=True,
            text=True,
        )
        duration = time.monotonic() - start
        logger.debug("%s exited with %d after %.3fs", cfg.id, proc.returncode, duration)

        output = (proc.stdout.strip() or proc.stderr.strip())
        if not output:
            output = f"Command exited with code {proc.returncode}."

        result: CheckResult = {"id": cfg.id}
        if cfg.label is not None:
            result["label"] = cfg.label
        result["status"] = OK if proc.returncode == 0 else CRITICAL
        result["info"] = output
        result["returncode"] = proc.returncode
        result["duration_s"] = round(duration, 3)
        return result


def command_checks(suite: SuiteConfig, ids: list[str] | None = None) -> list[CommandCheck]:
    if not ids:
        return [CommandCheck(cfg) for cfg in suite]
    return [CommandCheck(suite.get_check(check_id)) for check_id in ids]
