"""
Bootstrap error taxonomy.

Every error raised while starting a cluster node is fatal to the process.
The CLI maps each class to a single diagnostic line and an exit status.
"""


class BootstrapError(Exception):
    """Base class for all fatal start-up failures."""

    exit_code = 1


class InvalidArguments(BootstrapError):
    """Bad command line shape (too many arguments, unknown role)."""

    exit_code = 2


class AddressDiscoveryFailed(BootstrapError):
    """No usable local address; the operator must pass --master."""


class StoreUnreachable(BootstrapError):
    """The backing store did not answer within the retry budget."""


class TrustBootstrapFailed(BootstrapError):
    """The certificate authority could not be loaded, created or used to sign."""


class DependencyStartFailed(BootstrapError):
    """A launched collaborator failed to start."""

    def __init__(self, component: str, reason):
        self.component = component
        self.reason = reason
        super().__init__(f"Unable to start {component}: {reason}")
