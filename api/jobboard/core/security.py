from fastapi import Depends, Request

from jobboard.core.auth import Principal, PrincipalType, parse_actor_header
from jobboard.core.config import Settings, get_settings


async def get_admin_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Principal:
    # Authentication happens upstream; this only carries the caller id for audit attribution.
    actor_id = parse_actor_header(request.headers.get(settings.admin_id_header))
    if actor_id is None:
        return Principal(principal_type=PrincipalType.ANONYMOUS, subject="anonymous")

    return Principal(
        principal_type=PrincipalType.ADMIN,
        subject=f"admin:{actor_id}",
        actor_id=actor_id,
    )
