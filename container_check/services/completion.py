"""
Completion state of a container, always derived from the presence of its
security check and checker data and never stored.
"""
from enum import Enum

from sqlalchemy import and_, exists, not_

from container_check.models import CheckerData, Container, SecurityCheck


class InspectionState(str, Enum):
    PENDING_SECURITY = "PendingSecurity"
    PENDING_CHECKER = "PendingChecker"
    COMPLETE = "Complete"


def derive_state(has_security_check: bool, has_checker_data: bool) -> InspectionState:
    if not has_security_check:
        return InspectionState.PENDING_SECURITY
    if not has_checker_data:
        return InspectionState.PENDING_CHECKER
    return InspectionState.COMPLETE


def state_of(container: Container) -> InspectionState:
    return derive_state(container.security_check is not None, container.checker_data is not None)


def state_filter(state: InspectionState):
    """SQL criterion selecting containers in ``state``; correlates on ``containers`` only."""
    has_security = exists().where(SecurityCheck.container_id == Container.id).correlate(Container)
    has_checker = exists().where(CheckerData.container_id == Container.id).correlate(Container)
    if state == InspectionState.PENDING_SECURITY:
        return not_(has_security)
    if state == InspectionState.PENDING_CHECKER:
        return and_(has_security, not_(has_checker))
    return and_(has_security, has_checker)
