from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from typing import Iterable, Mapping


COMMAND_NOT_FOUND_EXIT_CODE = 127

LOGGER = logging.getLogger("edge_provisioner.commands")


def command_available(name: str) -> bool:
    return shutil.which(name) is not None


def privileged(cmd: Iterable[str]) -> list[str]:
    """Prefix ``sudo`` unless we already run as root."""
    parts = [str(part) for part in cmd]
    if os.geteuid() == 0:
        return parts
    return ["sudo", *parts]


def _output_streams(verbose: bool, capture_output: bool) -> tuple[int | None, int | None]:
    if capture_output:
        return subprocess.PIPE, (None if verbose else subprocess.PIPE)
    if verbose:
        return None, None
    return subprocess.DEVNULL, subprocess.DEVNULL


def run_command(
    cmd: Iterable[str],
    *,
    verbose: bool,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    capture_output: bool = False,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run ``cmd`` to completion without raising on a non-zero exit.

    Output is discarded unless ``verbose`` is set or ``capture_output`` asks for
    stdout. A binary that cannot be started is reported as exit status 127.
    """
    args = [str(part) for part in cmd]
    stdout, stderr = _output_streams(verbose, capture_output)
    LOGGER.debug("Running command: %s", shlex.join(args))
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            input=input_text,
            stdin=subprocess.DEVNULL if input_text is None else None,
            stdout=stdout,
            stderr=stderr,
            text=True,
            check=False,
        )
    except OSError as exc:
        LOGGER.debug("Unable to start %s: %s", args[0], exc)
        return subprocess.CompletedProcess(args, COMMAND_NOT_FOUND_EXIT_CODE, "", str(exc))
    LOGGER.debug("Command exited with status %s: %s", result.returncode, args[0])
    return result


def start_command(
    cmd: Iterable[str],
    *,
    verbose: bool,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> subprocess.Popen[str]:
    args = [str(part) for part in cmd]
    stdout, stderr = _output_streams(verbose, capture_output=False)
    LOGGER.debug("Starting command: %s", shlex.join(args))
    return subprocess.Popen(
        args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=stdout,
        stderr=stderr,
        text=True,
    )
