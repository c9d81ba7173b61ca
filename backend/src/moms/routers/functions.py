from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from moms.core.database import get_session
from moms.functions import CallContext, FunctionError, dispatch
from moms.models.identity import User
from moms.utils.clock import Clock

from .deps import get_clock, optional_uid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])


@router.post("/{name}")
def call_function(
    name: str,
    data: Optional[Dict[str, Any]] = Body(default=None),
    uid: Optional[str] = Depends(optional_uid),
    clock: Clock = Depends(get_clock),
    session: Session = Depends(get_session),
):
    caller = session.get(User, uid) if uid else None
    ctx = CallContext(db=session, caller=caller, now=clock())
    try:
        result = dispatch(name, ctx, data or {})
    except FunctionError as exc:
        session.rollback()
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.message, "code": exc.code},
        )
    except Exception:
        session.rollback()
        logger.exception("function %s crashed", name)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "An error occurred", "code": "internal"},
        )
    return {"success": True, "data": result}
