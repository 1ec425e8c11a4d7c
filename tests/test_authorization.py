from types import SimpleNamespace

import pytest

from grownet.authorization import ROLE_CAPABILITIES, Capability, Role, authorize, can
from grownet.exceptions import Forbidden


def test_every_role_has_capabilities():
    assert set(ROLE_CAPABILITIES) == set(Role)


@pytest.mark.parametrize("role", [Role.MENTOR, Role.MENTEE, Role.ADMIN])
def test_everyone_can_connect_and_message(role):
    assert can(role, Capability.CONNECT)
    assert can(role, Capability.MESSAGE)


def test_only_admin_manages_users():
    assert can(Role.ADMIN, Capability.MANAGE_USERS)
    assert not can(Role.MENTOR, Capability.MANAGE_USERS)
    assert not can(Role.MENTEE, Capability.MANAGE_USERS)


def test_can_accepts_role_values():
    assert can("admin", Capability.MANAGE_USERS)


def test_authorize_raises_forbidden():
    with pytest.raises(Forbidden) as exc_info:
        authorize(SimpleNamespace(role=Role.MENTEE), Capability.MANAGE_USERS)
    assert exc_info.value.status_code == 403


def test_authorize_allows():
    authorize(SimpleNamespace(role=Role.ADMIN), Capability.MANAGE_USERS)
