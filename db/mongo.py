from motor.motor_asyncio import AsyncIOMotorClient
import os
from dotenv import load_dotenv
import logging
import certifi
import sys

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()
MONGO_URI = os.getenv("MONGO_URI")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "shared-calendar")

# Set once init_db has pinged the server and created indexes
connected = False

logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
logger.info(f"MongoDB URI exists: {MONGO_URI is not None}")

# Initialize MongoDB client
try:
    if not MONGO_URI:
        logger.error("MONGO_URI environment variable is not set")
        client = None
        db = None
    else:
        logger.info("Connecting to MongoDB...")
        client = AsyncIOMotorClient(
            MONGO_URI,
            tls=True,
            tlsCAFile=certifi.where(),
            connectTimeoutMS=30000,
            serverSelectionTimeoutMS=30000,
            retryWrites=True,
            retryReads=True
        )
        db = client.get_database(MONGO_DB_NAME)
        logger.info("MongoDB connected successfully")
except Exception as e:
    logger.error(f"MongoDB connection error: {str(e)}")
    client = None
    db = None

async def verify_connection():
    """Verify MongoDB connection"""
    if not client:
        logger.error("MongoDB client not initialized")
        raise ValueError("MongoDB client not initialized")

    try:
        await client.admin.command('ping')
        logger.info("MongoDB connection verified")
        return True
    except Exception as e:
        logger.error(f"MongoDB connection verification failed: {str(e)}")
        raise

def get_db():
    """Get database instance"""
    if db is None:
        logger.error("Database not initialized")
    return db

async def create_indexes(database):
    """Create the indexes the event and invite services rely on"""
    await database.users.create_index([("email", 1)], unique=True)
    await database.events.create_index([("userId", 1)])
    # One invite per (event, user); re-invites upsert onto this key
    await database.event_invites.create_index(
        [("eventId", 1), ("userId", 1)],
        unique=True
    )
    await database.event_invites.create_index([("userId", 1), ("status", 1)])

async def init_db():
    """Initialize database collections and indexes"""
    global connected
    if client is None or db is None:
        logger.error("Database not initialized")
        raise ValueError("Database not initialized")

    try:
        await verify_connection()
        logger.info("Creating database indexes...")
        await create_indexes(db)
        connected = True
        logger.info("Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise

# Initialize database if run directly
if __name__ == "__main__":
    import asyncio
    if client is not None and db is not None:
        asyncio.run(init_db())
    else:
        logger.error("Cannot initialize database - client or db not initialized")
