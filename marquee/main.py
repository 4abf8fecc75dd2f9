import asyncio
import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager
from marquee.db.init_db import create_database
from marquee.db.base import Base
from marquee.db.session import engine, SessionLocal
from marquee.core.config import settings
from marquee.core.exception_handlers import register_exception_handlers
from marquee.api.v1.router import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _showtime_cleanup_loop() -> None:
    """Background task: deactivate long-past showtimes every SHOWTIME_CLEANUP_SECONDS."""
    from marquee.utils.showtimes import deactivate_past_showtimes

    while True:
        try:
            db = SessionLocal()
            try:
                count = deactivate_past_showtimes(db)
                if count:
                    logger.info("Deactivated %d past showtime(s).", count)
            finally:
                db.close()
        except Exception:
            logger.exception("Error during past-showtime cleanup.")
        await asyncio.sleep(settings.SHOWTIME_CLEANUP_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    cleanup_task = asyncio.create_task(_showtime_cleanup_loop())
    yield

    # Shutdown: cancel background task
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def read_root():
    return {"name": settings.PROJECT_NAME, "status": "ok"}
