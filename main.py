from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from authlib.integrations.starlette_client import OAuth
from starlette.middleware.sessions import SessionMiddleware
import os
from dotenv import load_dotenv
from routes import init_routes
from db import mongo
from routes.deps import require_db


app = FastAPI(title="Shared Calendar API")

# Load environment variables
load_dotenv()
FRONTEND_URL = os.getenv("FRONTEND_URL")
SECRET_KEY = os.getenv("SECRET_KEY")

if not FRONTEND_URL:
    raise RuntimeError("FRONTEND_URL is not set in .env")

if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY is not set in .env")

# Simple session middleware
app.add_middleware(
    SessionMiddleware,
    secret_key=SECRET_KEY,
    max_age=14 * 24 * 60 * 60,
    same_site="none",
    https_only=True,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configure OAuth
oauth = OAuth()
google_client_id = os.getenv("GOOGLE_CLIENT_ID")
google_client_secret = os.getenv("GOOGLE_CLIENT_SECRET")

if google_client_id and google_client_secret:
    oauth.register(
        name='google',
        client_id=google_client_id,
        client_secret=google_client_secret,
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={
            'scope': 'openid email profile',
            'token_endpoint_auth_method': 'client_secret_post'
        }
    )

init_routes(app, oauth)

@app.on_event("startup")
async def startup():
    if mongo.client:
        await mongo.init_db()

@app.get("/")
async def root():
    return {"status": "ok", "db_connected": mongo.connected}

@app.get("/health/db")
async def db_health(_=Depends(require_db)):
    return {"status": "ok"}
