"""SQLAlchemy models for the ProjectHub backend."""

from app.models.user import User  # noqa: F401
from app.models.project import Project, ProjectMember  # noqa: F401
from app.models.invitation import Invitation  # noqa: F401
from app.models.notification import Notification  # noqa: F401
