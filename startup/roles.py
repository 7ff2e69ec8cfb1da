"""
Role resolution for the start command.

The single optional positional argument decides which of the store, master
and node run in this process. This is the first decision made; every later
stage branches on it.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Sequence

from shared.errors import InvalidArguments
from startup.config import Configuration

logger = logging.getLogger(__name__)

USAGE_ERROR = (
    "You may start an all-in-one server with no arguments, "
    "or pass 'master' or 'node' to run in that role."
)


class Role(str, enum.Enum):
    """Bootstrap plan for this process"""
    ALL_IN_ONE = "all-in-one"
    MASTER_ONLY = "master"
    NODE_ONLY = "node"

    @property
    def starts_master(self) -> bool:
        return self in (Role.ALL_IN_ONE, Role.MASTER_ONLY)

    @property
    def starts_node(self) -> bool:
        return self in (Role.ALL_IN_ONE, Role.NODE_ONLY)


@dataclass(frozen=True)
class StartupSelection:
    """Which components this process launches locally."""
    start_store: bool
    start_master: bool
    start_node: bool
    start_kube: bool


def resolve_role(args: Sequence[str]) -> Role:
    """
    Map the positional arguments of the start command to a role.

    Raises:
        InvalidArguments: More than one argument, or an unknown role name
    """
    args = list(args or [])
    if len(args) > 1:
        raise InvalidArguments(USAGE_ERROR)
    if not args:
        return Role.ALL_IN_ONE

    token = str(args[0]).strip()
    if token == Role.MASTER_ONLY.value:
        return Role.MASTER_ONLY
    if token == Role.NODE_ONLY.value:
        return Role.NODE_ONLY
    raise InvalidArguments(USAGE_ERROR)


def select_components(role: Role, config: Configuration) -> StartupSelection:
    """
    Derive the component set from the role and which addresses were given.

    The store is embedded only alongside a master and only when no external
    store address was provided. The workload-orchestration layer is embedded
    when no external endpoint was provided.
    """
    return StartupSelection(
        start_store=role.starts_master and not config.etcd_addr.provided,
        start_master=role.starts_master,
        start_node=role.starts_node,
        start_kube=not config.kubernetes_addr.provided,
    )
