import enum

from grownet.exceptions import Forbidden


class Role(str, enum.Enum):
    MENTOR = "mentor"
    MENTEE = "mentee"
    ADMIN = "admin"


class Capability(str, enum.Enum):
    CONNECT = "connect"
    MESSAGE = "message"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.MENTEE: frozenset({Capability.CONNECT, Capability.MESSAGE}),
    Role.MENTOR: frozenset({Capability.CONNECT, Capability.MESSAGE}),
    Role.ADMIN: frozenset(Capability),
}


def can(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES[Role(role)]


def authorize(user, capability: Capability) -> None:
    """Raise Forbidden unless the user's role grants the capability.

    Parameters:
        user: Any object with a ``role`` attribute.
        capability: The capability the caller needs.

    Raises:
        Forbidden: If the role does not grant the capability.
    """
    if not can(user.role, capability):
        raise Forbidden()
