from __future__ import annotations

import itertools
import subprocess
import threading
import time

import click


SPINNER_GLYPHS = ("-", "\\", "|", "/")
SPINNER_INTERVAL_SECONDS = 0.1


class Spinner:
    """Draws a spinner while ``process`` is alive.

    Purely cosmetic: the spinner only observes the process through ``poll()``
    and its outcome is never consulted by the caller.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        message: str,
        *,
        interval: float = SPINNER_INTERVAL_SECONDS,
    ) -> None:
        self.process = process
        self.message = message
        self.interval = interval
        self._thread = threading.Thread(target=self._spin, name="edge-provisioner-spinner", daemon=True)

    def start(self) -> Spinner:
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def __enter__(self) -> Spinner:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.join()

    def _spin(self) -> None:
        glyphs = itertools.cycle(SPINNER_GLYPHS)
        while self.process.poll() is None:
            click.echo(f"\r[{next(glyphs)}] {self.message}", nl=False)
            time.sleep(self.interval)
        if self.process.returncode == 0:
            click.echo(f"\r[✔] {self.message} complete")
        else:
            click.echo(f"\r[✘] {self.message} failed")
