from __future__ import annotations

from fastapi import APIRouter, Depends

from sitepanel.schemas.accounts import SessionOut
from sitepanel.security.context import SessionState
from sitepanel.security.dependencies import get_session_state

router = APIRouter(tags=["me"])


@router.get("/me", response_model=SessionOut)
def me(state: SessionState = Depends(get_session_state)) -> SessionOut:
    # "Who am I" without re-querying: the gate already resolved identity and profile.
    return state.snapshot()
