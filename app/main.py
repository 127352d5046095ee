import contextlib
import logging
import re
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import LOG_LEVEL
from app.insurance_database import init_db
from app.router.claim import router as claim_router
from app.router.validation import router as validation_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the database tables on startup.
    """
    init_db()
    yield


app = FastAPI(
    title="NHIS Claim Itemization API",
    lifespan=lifespan,
)


app.include_router(claim_router, prefix="/api")
app.include_router(validation_router, prefix="/api")


@app.middleware("http")
async def fix_invalid_json_backslashes(request: Request, call_next):
    # Only apply to JSON requests
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        return await call_next(request)

    body = await request.body()
    if not body:
        return await call_next(request)

    try:
        raw = body.decode("utf-8")
    except UnicodeDecodeError:
        return JSONResponse(
            {"error": "Invalid UTF-8 JSON payload"},
            status_code=400,
        )

    # treatment text pasted from facility systems carries stray backslashes
    fixed = re.sub(r'\\(?!["\\/bfnrtu])', r'\\\\', raw)

    request._body = fixed.encode("utf-8")

    return await call_next(request)
