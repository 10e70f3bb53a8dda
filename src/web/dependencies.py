"""Shared dependencies for the pipeline API routers."""

import secrets
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.core.config import settings
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

security = HTTPBasic()


# --- Auth ---

def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    """Authenticate user via HTTP Basic Auth."""
    current_username_bytes = credentials.username.encode("utf8")
    correct_username_bytes = settings.api_username.encode("utf8")
    is_correct_username = secrets.compare_digest(
        current_username_bytes, correct_username_bytes
    )

    current_password_bytes = credentials.password.encode("utf8")
    correct_password_bytes = settings.api_password.encode("utf8")
    is_correct_password = secrets.compare_digest(
        current_password_bytes, correct_password_bytes
    )

    if not (is_correct_username and is_correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


# --- Pipeline ---

def get_pipeline(request: Request) -> Pipeline:
    """The pipeline wired at startup (app.state.pipeline)."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not configured",
        )
    return pipeline
