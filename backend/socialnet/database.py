import os
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from .store import SqlStore

# Load environment variables from .env
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set in environment variables")

# Create the database engine (new database connection)
engine = create_async_engine(DATABASE_URL, echo=os.getenv("SQL_ECHO") == "1")

# Factory for creating new database sessions
AsyncSessionLocal = async_sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

# Provides a record store (wrapping a fresh session) for each request
async def get_store():
    async with AsyncSessionLocal() as session:
        yield SqlStore(session)
