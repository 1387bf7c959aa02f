import unicodedata
from enum import Enum


class AccountType(str, Enum):
    INSTITUTIONAL = "INSTITUTIONAL"
    PERSONAL = "PERSONAL"


class MemberRole(str, Enum):
    OWNER = "OWNER"
    MEMBER = "MEMBER"


class GroupType(str, Enum):
    GROUP = "GROUP"
    INDIVIDUAL = "INDIVIDUAL"


class InstallationAccountType(str, Enum):
    USER = "User"
    ORGANIZATION = "Organization"


# Role names as stored in the roles table
class RoleName(str, Enum):
    ADMIN = "ADMIN"
    STUDENT = "ESTUDIANTE"
    DIRECTOR = "DIRECTOR"
    TEACHER = "DOCENTE"


def strip_accents(value: str) -> str:
    """Remove combining marks after NFD decomposition ("Ñandú" -> "Nandu")."""
    decomposed = unicodedata.normalize("NFD", str(value))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))
