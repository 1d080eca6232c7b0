import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from playroom.crud import CreateData
from playroom.db import engine
from playroom.dependencies import redis
from playroom.routers import restapi, session

logging.basicConfig(level=logging.INFO)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)

create_data = CreateData()


@asynccontextmanager
async def lifespan(app):
    """Create the session, chat and user tables.
    This function is called to start the server.
    """
    await create_data.create_table(engine)
    try:
        yield
    finally:
        await redis.aclose()
        await engine.dispose()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(session.session_router)
app.include_router(restapi.rest_router)
