from __future__ import annotations

import click


class ProvisionError(click.ClickException):
    """Base class for failures that abort provisioning."""

    exit_code = 1


class MissingArgument(ProvisionError):
    pass


class UnknownOption(ProvisionError):
    pass


class MissingCredentials(ProvisionError):
    pass


class UnsupportedArchitecture(ProvisionError):
    pass


class DependencyInstallError(ProvisionError):
    pass


class AuthenticationError(ProvisionError):
    pass


class ImagePullError(ProvisionError):
    pass


class LaunchError(ProvisionError):
    pass
