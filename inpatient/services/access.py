from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from inpatient.permissions import BED_MANAGER_ROLES


def require_bed_manager(actor):
    """Check the caller capability passed into every bed operation.

    Raises ``NotAuthenticated`` without a signed-in actor and
    ``PermissionDenied`` for roles other than admin, doctor or staff.
    """
    if actor is None or not getattr(actor, 'is_authenticated', False):
        raise NotAuthenticated('Unauthorized')
    if getattr(actor, 'role', None) not in BED_MANAGER_ROLES:
        raise PermissionDenied('Access denied. Admin, doctor, or staff role required')
    return actor
