from __future__ import annotations

import logging
import os
import sys

import click

from .config import Credentials, ProvisionerSettings, build_request
from .errors import MissingArgument, UnknownOption
from .workflow import ProvisioningWorkflow


LOGGER = logging.getLogger("edge_provisioner")
LOGGER.addHandler(logging.NullHandler())


def _configure_logging(debug: bool) -> None:
    handler = logging.StreamHandler(sys.__stderr__)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    LOGGER.handlers.clear()
    LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.DEBUG if debug else logging.WARNING)
    LOGGER.propagate = False


class ProvisionCommand(click.Command):
    """Reports malformed command lines with exit status 1 instead of click's usage status."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.NoSuchOption as exc:
            raise UnknownOption(exc.format_message()) from exc
        except click.BadOptionUsage as exc:
            raise MissingArgument(exc.format_message()) from exc
        except click.UsageError as exc:
            raise UnknownOption(exc.format_message()) from exc


def _prompt_client_id() -> str:
    try:
        value = click.prompt("Enter the clientId", default="", show_default=False)
    except click.Abort as exc:
        raise MissingArgument("clientId cannot be empty.") from exc
    return str(value or "").strip()


@click.command(cls=ProvisionCommand, help="Provision this host as a Greengrass edge gateway.")
@click.option("--aws-region", "aws_region", default=None, help="AWS region that hosts the registry and the device.")
@click.option("--clientId", "client_id", default=None, help="Client id for the device (prompted when omitted).")
@click.option("--debug", is_flag=True, default=False, help="Show diagnostic logs and subprocess output.")
def main(aws_region: str | None, client_id: str | None, debug: bool) -> None:
    _configure_logging(debug)

    if not str(aws_region or "").strip():
        raise MissingArgument("--aws-region is required.")
    environ = dict(os.environ)
    credentials = Credentials.from_environ(environ)
    if not str(client_id or "").strip():
        client_id = _prompt_client_id()
    request = build_request(aws_region, client_id, debug=debug)

    settings = ProvisionerSettings.from_environ(environ)
    LOGGER.debug(
        "Provisioning region=%s client_id=%s image=%s",
        request.region,
        request.client_id,
        settings.image_for(request.region).uri,
    )

    result = ProvisioningWorkflow(request=request, credentials=credentials, settings=settings).run()

    click.echo("Greengrass Core Installation Complete!")
    click.echo("----------------------------------------")
    click.echo(f"Generated Device Id (UUID): {result.identity.thing_name}")
    click.echo(f"Client ID: {result.request.client_id}")
    click.echo(f"AWS Region: {result.request.region}")
    click.echo("----------------------------------------")


if __name__ == "__main__":
    main()
