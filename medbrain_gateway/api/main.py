"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medbrain_gateway.api.routers import chat, export, query, workflows
from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import bind_request_context, reset_request_context
from medbrain_gateway.governance.rate_limiter import client_id_from_headers

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

app = FastAPI(
    title="MedBrain Gateway",
    version="0.1.0",
    description="Governed NL-to-SQL gateway for the analytics dashboard",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def bind_request_logging(request: Request, call_next):
    token = bind_request_context(client_id_from_headers(request.headers), request.url.path)
    try:
        return await call_next(request)
    finally:
        reset_request_context(token)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


app.include_router(chat.router, prefix="/api", tags=["Copilot"])
app.include_router(query.router, prefix="/api", tags=["Query"])
app.include_router(export.router, prefix="/api", tags=["Query"])
app.include_router(workflows.router, prefix="/api", tags=["Workflows"])


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().api_port)
