# SQLModel definitions — imported here to ensure metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .project import Project  # noqa: F401
from .membership import ProjectMembership  # noqa: F401
from .task import Task  # noqa: F401
from .comment import Comment  # noqa: F401
