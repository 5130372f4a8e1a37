from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planner.core.config import APP_NAME, APP_VERSION, CORS_ORIGINS, MONGODB_URI, SERVER_HOST, SERVER_PORT, configure_logging
from planner.db.database import close_database_connection, init_indexes, test_connection
from planner.router.candidates import router as candidates_router
from planner.router.realtime import RoomManager, router as realtime_router
from planner.router.schedules import router as schedules_router
from planner.router.system import router as system_router
from planner.router.trips import router as trips_router
from planner.store.base import ScheduleStore
from planner.store.memory import MemoryScheduleStore

logger = logging.getLogger(__name__)


def _default_store() -> ScheduleStore:
    if MONGODB_URI:
        from planner.store.mongo import MongoScheduleStore

        return MongoScheduleStore()
    logger.warning("MONGODB_URI is not set; using the in-process store")
    return MemoryScheduleStore()


def create_app(store: ScheduleStore | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Starting up %s %s", APP_NAME, APP_VERSION)
        uses_mongo = not isinstance(app.state.store, MemoryScheduleStore)
        if uses_mongo:
            await test_connection()
            await init_indexes()
        yield
        logger.info("Shutting down %s", APP_NAME)
        if uses_mongo:
            await close_database_connection()

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.store = store or _default_store()
    app.state.rooms = RoomManager()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routers
    app.include_router(system_router)
    app.include_router(trips_router)
    app.include_router(schedules_router)
    app.include_router(candidates_router)
    app.include_router(realtime_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
