from dataclasses import dataclass
from fastapi import Header, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

from market.core.security import verify_owner_token

owner_token_header = APIKeyHeader(name="X-Owner-Token", auto_error=False)


@dataclass(frozen=True)
class Actor:
    owner_id: str
    # normalized account phone, used as listing contact when present
    account_phone: str | None = None


async def get_actor(
    owner_token: str | None = Security(owner_token_header),
    x_account_phone: str | None = Header(default=None),
) -> Actor:
    if not owner_token:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Token")

    owner_id = verify_owner_token(owner_token)
    if not owner_id:
        raise HTTPException(status_code=401, detail="Invalid owner token")

    return Actor(owner_id=owner_id, account_phone=x_account_phone or None)
