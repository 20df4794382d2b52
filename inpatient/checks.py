"""
System checks for the database backends the allocator can run on.

One active bed per room/bed pair and one open admission per bed and per
patient are enforced by partial unique constraints. A backend that
silently drops them (MySQL, MariaDB) would let concurrent writers
duplicate rows, so it is refused at startup.
"""
from django.conf import settings
from django.core.checks import Error, register
from django.db import connections

UNSUPPORTED_BACKEND_ID = 'inpatient.E001'


@register()
def check_partial_unique_constraints(app_configs=None, databases=None, **kwargs):
    errors = []
    for alias in settings.DATABASES:
        connection = connections[alias]
        if not connection.features.supports_partial_indexes:
            errors.append(Error(
                f"Database '{alias}' ({connection.vendor}) does not support partial unique constraints.",
                hint='Use PostgreSQL or SQLite; the occupancy ledger relies on conditional UniqueConstraints.',
                id=UNSUPPORTED_BACKEND_ID,
            ))
    return errors
