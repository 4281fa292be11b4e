from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, status


async def get_acting_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """Identity of the caller, as asserted by the upstream auth gateway."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id")
    return user_id
