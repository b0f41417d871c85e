"""
club_services -- the application-facing finance facade and its
collaborators (authorization gate, audit sink).
"""

from club_services.audit import AuditSink, LoggingAuditSink
from club_services.authorization import (
    Action,
    AuthorizationGate,
    Resource,
    Role,
    RolePermissionGate,
)
from club_services.finance_service import ClubFinanceService

__all__ = [
    "Action",
    "AuditSink",
    "AuthorizationGate",
    "ClubFinanceService",
    "LoggingAuditSink",
    "Resource",
    "Role",
    "RolePermissionGate",
]
