import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import LOG_LEVEL, STORAGE_BACKEND
from database import engine, Base
from exceptions import RideShareError
from storage import MemStorage
from routers import rides, ride_requests, messages, reviews, users

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if STORAGE_BACKEND == "memory":
        app.state.storage = MemStorage()
        logger.info("Using in-memory storage.")
    else:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready.")
    yield
    await engine.dispose()

app = FastAPI(title="Campus Ride Share", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RideShareError)
async def ride_share_error_handler(request: Request, exc: RideShareError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Surface only the first failing rule
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid input")
    return JSONResponse(status_code=400, content={"detail": f"{field}: {message}" if field else message})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

app.include_router(users.router)
app.include_router(rides.router)
app.include_router(ride_requests.router)
app.include_router(messages.router)
app.include_router(reviews.router)

@app.get("/")
def read_root():
    return {"message": "Welcome to Campus Ride Share"}
