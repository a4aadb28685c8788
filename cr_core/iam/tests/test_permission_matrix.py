import pytest

from cr_core.iam.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    has_permission,
    permissions_for,
)

READS = {p for p in Permission.values if p.endswith(".read")}


@pytest.mark.parametrize("permission", Permission.values)
@pytest.mark.parametrize("role", Role.values)
def test_every_role_permission_pair(role, permission):
    if role in (Role.ADMIN, Role.PROVIDER):
        expected = True
    elif role in (Role.CLERK, Role.PROVIDER_PENDING, Role.PROVIDER_REVIEWING):
        expected = permission in READS
    else:
        expected = False

    assert has_permission(role, permission) is expected


def test_unknown_or_missing_role_has_nothing():
    assert has_permission(None, Permission.PROGRESS_NOTE_READ) is False
    assert has_permission("nurse", Permission.PROGRESS_NOTE_READ) is False
    assert permissions_for(None) == []


def test_patient_holds_no_clinical_permissions():
    assert permissions_for(Role.PATIENT) == []


def test_matrix_is_read_only():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS[Role.PATIENT] = frozenset(Permission.values)
