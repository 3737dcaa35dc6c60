from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from core.log import logger
from routes.event import router as event_router
from routes.intent import router as intent_router
from routes.ticket import router as ticket_router

from settings import CORS_ALLOW_CREDENTIALS, CORS_ALLOW_ORIGINS

app = FastAPI(title="DAME Tickets BE")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ticket_router)
app.include_router(intent_router)
app.include_router(event_router)


@app.exception_handler(ValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    error_details = []
    for error in exc.errors():
        field = error["loc"][0] if error["loc"] else "general"
        message = error["msg"]
        error_details.append({"field": field, "message": message})

    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error in the request data (Pydantic validation).",
            "errors": error_details,
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    error_details = []
    for error in exc.errors():
        # first loc item is where the value came from (body, query, path)
        field = ".".join(str(loc) for loc in error["loc"][1:]) or "general"
        error_details.append({"field": field, "message": error["msg"]})

    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error in the request data.",
            "errors": error_details,
        },
    )


@app.get("/")
async def hello():
    logger.info("hello")
    return {"Hello": "from DAME Tickets BE"}


@app.get("/health")
def health():
    return {"status": "ok"}
