# SQLModel tables; importing this package populates the metadata used by migrations.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .role import Role  # noqa: F401
from .faculty import Faculty  # noqa: F401
from .career import Career  # noqa: F401
from .subject import Subject  # noqa: F401
from .user import User  # noqa: F401
from .project import Project  # noqa: F401
from .project_member import ProjectMember  # noqa: F401
from .github_account import GithubAccount  # noqa: F401
from .github_installation import GithubInstallation  # noqa: F401
