from dataclasses import dataclass
from enum import Enum

from jobboard.services.aggregate import parse_record_id


class PrincipalType(str, Enum):
    ADMIN = "admin"
    ANONYMOUS = "anonymous"


@dataclass(slots=True)
class Principal:
    principal_type: PrincipalType
    subject: str
    actor_id: int | None = None


def parse_actor_header(raw_value: str | None) -> int | None:
    """Admin ids forwarded by the auth layer are positive integers; anything else is ignored."""
    if not raw_value:
        return None
    return parse_record_id(raw_value)
