import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from split_ledger.core.config import settings
from split_ledger.core.exceptions import LedgerError
from split_ledger.core.logging_config import configure_logging
from split_ledger.db.database import Base, check_db_connection, engine
from split_ledger.api.v1.routes.debts import router as debts_router
from split_ledger.rabbitmq.producer import close_rabbitmq_producer
from split_ledger.utils.response_helper import error_response

logger = logging.getLogger(__name__)

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if check_db_connection():
        Base.metadata.create_all(bind=engine)
    yield
    close_rabbitmq_producer()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Tracks who owes whom inside groups and settles debts",
    version=settings.PROJECT_VERSION,
    lifespan=lifespan
)

app.include_router(debts_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    error = exc.to_dict()
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(error["code"], error["message"], error.get("details"))
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_response("VALIDATION_ERROR", "Validation failed", {"errors": errors})
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "AUTHENTICATION_FAILED" if exc.status_code == 401 else "HTTP_ERROR"
    return JSONResponse(status_code=exc.status_code, content=error_response(code, str(exc.detail)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_response("INTERNAL_ERROR", "Internal server error"))


@app.get("/")
def read_root():
    return {"message": "Split Ledger API", "version": settings.PROJECT_VERSION}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
