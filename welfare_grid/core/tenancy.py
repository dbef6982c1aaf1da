"""Tenant access policy.

Tenant scoping is an explicit query predicate rather than an implicit ORM
filter. Repositories compose it into their statements; the one sanctioned
cross-tenant read (claim history for fraud scoring) simply does not.
"""

from typing import Optional

from sqlalchemy import Select, true
from sqlalchemy.sql.elements import ColumnElement

from welfare_grid.core.exceptions import TenantAccessError
from welfare_grid.schemas.auth import CallerContext


def tenant_predicate(column, caller: Optional[CallerContext]) -> ColumnElement[bool]:
    """Build the visibility clause for ``caller`` over a municipality column.

    Args:
        column: The ``municipality_id`` column of the queried entity
        caller: Authenticated caller; None is treated as a system caller

    Returns:
        ``column == caller.municipality_id`` for tenant-scoped callers,
        ``true()`` for province-wide ones
    """
    if caller is None or caller.is_provincial:
        return true()
    return column == caller.municipality_id


def apply_tenant_scope(stmt: Select, column, caller: Optional[CallerContext]) -> Select:
    """Compose the tenant predicate into a select statement."""
    if caller is None or caller.is_provincial:
        return stmt
    return stmt.where(tenant_predicate(column, caller))


def ensure_tenant_access(caller: Optional[CallerContext], municipality_id: Optional[int]) -> None:
    """Raise if ``caller`` may not act on a row owned by ``municipality_id``."""
    if caller is None or caller.can_access(municipality_id):
        return
    raise TenantAccessError(
        f"Caller {caller.user_id} is restricted to municipality {caller.municipality_id}",
        municipality_id=municipality_id,
    )
