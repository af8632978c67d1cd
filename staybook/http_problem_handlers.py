# staybook/http_problem_handlers.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from staybook.api.problem import NEXT_ACTIONS, make_problem
from staybook.core.audit import new_trace
from staybook.core.errors import BizError

logger = logging.getLogger("staybook")


def _trace_id(req: Request) -> str:
    return getattr(req.state, "trace_id", None) or new_trace(f"http:{req.url.path}").trace_id


def _req_context(req: Request) -> Dict[str, Any]:
    return {"path": getattr(req.url, "path", ""), "method": req.method}


def _problem_from_http_exc(req: Request, exc: HTTPException) -> Dict[str, Any]:
    """
    Render HTTPException.detail as a Problem:
    - already a Problem dict → keep, fill http_status / trace_id / context
    - list → validation details
    - str / other → generic http_error
    """
    status_code = int(exc.status_code)
    trace_id = _trace_id(req)
    ctx = _req_context(req)
    d = exc.detail

    if isinstance(d, dict) and "error_code" in d and "message" in d:
        out = dict(d)
        out.setdefault("http_status", status_code)
        out.setdefault("trace_id", trace_id)
        merged = dict(ctx)
        if isinstance(out.get("context"), dict):
            merged.update(out["context"])
        out["context"] = merged
        return out

    if isinstance(d, list):
        details: List[Dict[str, Any]] = [
            {"type": "validation", "path": f"validation[{i}]", "reason": str(e)} for i, e in enumerate(d)
        ]
        return make_problem(
            status_code=status_code,
            error_code="request_validation_error",
            message="Request is invalid.",
            context=ctx,
            details=details,
            trace_id=trace_id,
        )

    return make_problem(
        status_code=status_code,
        error_code="http_error",
        message=str(d) if d is not None else "Request rejected.",
        context=ctx,
        trace_id=trace_id,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BizError)
    async def _biz_exc(req: Request, exc: BizError):
        ctx = _req_context(req)
        ctx.update(exc.context)
        content = make_problem(
            status_code=exc.status,
            error_code=exc.code,
            message=exc.message,
            context=ctx,
            next_actions=NEXT_ACTIONS.get(exc.code),
            trace_id=_trace_id(req),
        )
        logger.info("biz error %s on %s %s: %s", exc.code, req.method, req.url.path, exc.message)
        return JSONResponse(status_code=exc.status, content=content)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _trace_id(req)
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="internal_error",
            message="Internal error, please retry later.",
            context=_req_context(req),
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details: List[Dict[str, Any]] = []
        for i, e in enumerate(exc.errors()):
            if not isinstance(e, dict):
                continue
            loc = ".".join(str(p) for p in e.get("loc") or ())
            details.append(
                {
                    "type": "validation",
                    "path": loc or f"validation[{i}]",
                    "reason": str(e.get("msg") or e.get("type") or "invalid"),
                }
            )
        content = make_problem(
            status_code=422,
            error_code="request_validation_error",
            message="Request is invalid.",
            context=_req_context(req),
            details=details,
            trace_id=_trace_id(req),
        )
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        content = _problem_from_http_exc(req, exc)
        return JSONResponse(status_code=int(exc.status_code), content=content)
