"""Response conventions for the pipeline API.

1. GET single resource:
   Return the object dict directly.
   Example: {"id": 1, "name": "Central Block", "city": "Example City"}

2. GET collection (paginated):
   Return: {"status": "success", "data": [...], "total": int, "limit": int, "offset": int}

3. GET collection (unpaginated):
   Return: {"status": "success", "data": [...], "total": int}

4. POST mutation:
   Return: {"status": "success", "message": "...", ...}

5. Background job trigger:
   Return: {"status": "accepted", "message": "...", "job_id": "..."}

ERRORS
------
All errors use FastAPI HTTPException, which returns {"detail": "..."}.
- 400: invalid mode, tier or selection
- 401: bad credentials
- 404: unknown complex, listing, alert or job
- 503: pipeline not configured (missing research credentials)
"""

from typing import Any, Dict, List


def paginated(data: List[Dict], total: int, limit: int, offset: int) -> Dict[str, Any]:
    """Wrap a list result in a paginated envelope; `total` is the unpaged count."""
    return {
        "status": "success",
        "data": data,
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def collection(data: List[Dict]) -> Dict[str, Any]:
    return {
        "status": "success",
        "data": data,
        "total": len(data),
    }


def success(message: str = "OK", **extra) -> Dict[str, Any]:
    return {"status": "success", "message": message, **extra}


def accepted(message: str, **extra) -> Dict[str, Any]:
    """Background job started; poll its status endpoint."""
    return {"status": "accepted", "message": message, **extra}
