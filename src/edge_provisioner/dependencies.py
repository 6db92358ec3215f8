from __future__ import annotations

import logging
import platform
import shutil
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

import click

from .commands import command_available, privileged, run_command, start_command
from .config import AWS_CLI_BIN_DIR, AWS_CLI_DOWNLOAD_URLS, AWS_CLI_INSTALL_DIR
from .errors import DependencyInstallError, UnsupportedArchitecture
from .progress import Spinner


AWS_CLI_ARCHIVE_NAME = "awscliv2.zip"
DOWNLOAD_CHUNK_BYTES = 1024 * 1024
ARCHITECTURE_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}

LOGGER = logging.getLogger("edge_provisioner.dependencies")


def detect_architecture() -> str:
    return platform.machine()


def aws_cli_download_url(machine: str) -> str:
    normalized = ARCHITECTURE_ALIASES.get(str(machine or "").strip().lower())
    if normalized is None:
        raise UnsupportedArchitecture(f"Unsupported architecture: {machine or 'unknown'}")
    return AWS_CLI_DOWNLOAD_URLS[normalized]


def ensure_container_runtime() -> None:
    if not command_available("docker"):
        raise DependencyInstallError("Docker is not installed.")


def ensure_unzip(*, verbose: bool) -> bool:
    """Install ``unzip`` through apt when missing. Returns True if it installed."""
    if command_available("unzip"):
        LOGGER.debug("unzip is already installed.")
        return False

    LOGGER.debug("Installing unzip utility...")
    click.echo("Installation started")
    for cmd in (
        privileged(["apt-get", "update"]),
        privileged(["apt-get", "install", "unzip", "-y"]),
    ):
        result = run_command(cmd, verbose=verbose)
        if result.returncode != 0:
            raise DependencyInstallError(
                f"Failed to install unzip (exit code {result.returncode}): {' '.join(cmd)}"
            )
    return True


def download_file(url: str, destination: Path) -> None:
    LOGGER.debug("Downloading %s to %s", url, destination)
    request = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(request) as response, destination.open("wb") as handle:
            shutil.copyfileobj(response, handle, DOWNLOAD_CHUNK_BYTES)
    except (urllib.error.URLError, OSError) as exc:
        raise DependencyInstallError(f"Failed to download {url}: {exc}") from exc


def _run_installer(work_dir: Path, *, verbose: bool) -> None:
    cmd = privileged(
        [
            str(work_dir / "aws" / "install"),
            "--bin-dir",
            AWS_CLI_BIN_DIR,
            "--install-dir",
            AWS_CLI_INSTALL_DIR,
        ]
    )
    try:
        process = start_command(cmd, verbose=verbose, cwd=str(work_dir))
    except OSError as exc:
        raise DependencyInstallError(f"Unable to start AWS CLI installer: {exc}") from exc

    spinner = Spinner(process, "Installing AWS CLI").start()
    try:
        returncode = process.wait()
    finally:
        spinner.join()
    if returncode != 0:
        raise DependencyInstallError(f"AWS CLI installer failed with exit code {returncode}")


def ensure_aws_cli(*, verbose: bool, machine: str | None = None) -> bool:
    """Install the AWS CLI v2 when ``aws`` is missing. Returns True if it installed."""
    if command_available("aws"):
        LOGGER.debug("AWS CLI is already installed. Skipping installation.")
        return False

    arch = machine if machine is not None else detect_architecture()
    url = aws_cli_download_url(arch)
    ensure_unzip(verbose=verbose)
    LOGGER.debug("Installing AWS CLI for %s...", arch)

    try:
        work_area = tempfile.TemporaryDirectory(prefix="edge-provisioner-awscli-")
    except OSError as exc:
        raise DependencyInstallError(f"Unable to create a working directory for the AWS CLI installer: {exc}") from exc

    with work_area as tmp:
        work_dir = Path(tmp)
        archive = work_dir / AWS_CLI_ARCHIVE_NAME
        download_file(url, archive)

        result = run_command(["unzip", "-q", str(archive), "-d", str(work_dir)], verbose=verbose)
        if result.returncode != 0:
            raise DependencyInstallError(f"Failed to extract {archive.name} (exit code {result.returncode})")

        _run_installer(work_dir, verbose=verbose)
    return True


def ensure_dependencies(*, verbose: bool, machine: str | None = None) -> None:
    ensure_container_runtime()
    ensure_aws_cli(verbose=verbose, machine=machine)
