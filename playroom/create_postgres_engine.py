from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import create_async_engine
from playroom.load_secrets import user, password, host, port, db_name

# URL.create escapes credentials that contain "@" or "/"
POSTGRES_DATABASE_URL = URL.create(
    "postgresql+asyncpg",
    username=user,
    password=password,
    host=host,
    port=int(port) if port else None,
    database=db_name,
)

engine = create_async_engine(POSTGRES_DATABASE_URL, pool_size=20, max_overflow=20, pool_pre_ping=True)
