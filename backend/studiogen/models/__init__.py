"""ORM models. Importing this package registers every table on Base.metadata."""

from studiogen.models.project import Project, ProjectImage
from studiogen.models.user import AuditAction, AuditLog, RefreshToken, User

__all__ = [
    "AuditAction",
    "AuditLog",
    "Project",
    "ProjectImage",
    "RefreshToken",
    "User",
]
