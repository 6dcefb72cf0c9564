import json
import os

from fastapi import Header, HTTPException

MODE = os.getenv("AUTH_MODE", "disabled")  # disabled | api_key


def _load_keys(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(name): str(key) for name, key in data.items() if key}


# actor name -> key
API_KEYS = _load_keys(os.getenv("API_KEYS_JSON"))


async def require(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
):
    if MODE == "disabled":
        return {"sub": "anonymous", "mode": MODE}
    if MODE == "api_key":
        key = (x_api_key or (authorization or "").replace("Bearer ", "").strip())
        for name, expected in API_KEYS.items():
            if key and key == expected:
                return {"sub": name, "mode": MODE}
        raise HTTPException(status_code=401, detail="Unauthorized")
    raise HTTPException(status_code=501, detail=f"Unsupported AUTH_MODE '{MODE}'")
