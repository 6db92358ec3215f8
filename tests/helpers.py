from __future__ import annotations

import subprocess
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator
from unittest.mock import patch


@dataclass
class DummyProc:
    returncode: int | None = None
    exit_code: int = 0
    polls_before_exit: int = 0
    poll_count: int = 0

    def poll(self) -> int | None:
        self.poll_count += 1
        if self.poll_count > self.polls_before_exit:
            self.returncode = self.exit_code
        return self.returncode

    def wait(self, timeout: float | None = None) -> int:
        del timeout
        self.returncode = self.exit_code
        return self.exit_code


@dataclass
class FakeHost:
    """Stands in for PATH lookups and the docker/aws/apt-get/unzip processes."""

    installed: set[str] = field(default_factory=lambda: {"docker", "unzip", "aws"})
    images: list[str] = field(default_factory=list)
    failing: set[tuple[str, ...]] = field(default_factory=set)
    login_password: str = "ecr-password"
    installer_exit_code: int = 0
    container_id: str = "4f1c2d3e5a6b"
    calls: list[list[str]] = field(default_factory=list)
    call_kwargs: list[dict[str, object]] = field(default_factory=list)
    started: list[list[str]] = field(default_factory=list)
    downloads: list[str] = field(default_factory=list)

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.installed else None

    def _fails(self, args: list[str]) -> bool:
        return any(tuple(args[: len(prefix)]) == prefix for prefix in self.failing)

    def run(self, args: Iterable[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        cmd = [str(part) for part in args]
        self.calls.append(cmd)
        self.call_kwargs.append(dict(kwargs))
        stripped = cmd[1:] if cmd and cmd[0] == "sudo" else cmd
        if self._fails(stripped):
            return subprocess.CompletedProcess(cmd, 1, "", "simulated failure")

        stdout = ""
        if stripped[:3] == ["aws", "ecr", "get-login-password"]:
            stdout = self.login_password
        elif stripped[:2] == ["docker", "images"]:
            stdout = "".join(f"{image}\n" for image in self.images)
        elif stripped[:2] == ["docker", "pull"]:
            self.images.append(stripped[2])
        elif stripped[:2] == ["docker", "run"]:
            stdout = f"{self.container_id}\n"
        elif stripped[:2] == ["apt-get", "install"]:
            self.installed.add("unzip")
        return subprocess.CompletedProcess(cmd, 0, stdout, "")

    def popen(self, args: Iterable[str], **kwargs: object) -> DummyProc:
        del kwargs
        self.started.append([str(part) for part in args])
        if self.installer_exit_code == 0:
            self.installed.add("aws")
        return DummyProc(exit_code=self.installer_exit_code)

    def download(self, url: str, destination: object) -> None:
        del destination
        self.downloads.append(url)

    def commands_starting_with(self, *prefix: str) -> list[list[str]]:
        size = len(prefix)
        matches = []
        for cmd in self.calls:
            stripped = cmd[1:] if cmd and cmd[0] == "sudo" else cmd
            if tuple(stripped[:size]) == prefix:
                matches.append(stripped)
        return matches


@contextmanager
def patched_host(host: FakeHost, *, euid: int = 0, fake_download: bool = True) -> Iterator[FakeHost]:
    with ExitStack() as stack:
        stack.enter_context(patch("edge_provisioner.commands.shutil.which", side_effect=host.which))
        stack.enter_context(patch("edge_provisioner.commands.subprocess.run", side_effect=host.run))
        stack.enter_context(patch("edge_provisioner.commands.subprocess.Popen", side_effect=host.popen))
        stack.enter_context(patch("edge_provisioner.commands.os.geteuid", return_value=euid))
        if fake_download:
            stack.enter_context(patch("edge_provisioner.dependencies.download_file", side_effect=host.download))
        yield host
