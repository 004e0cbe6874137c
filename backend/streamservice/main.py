from fastapi import FastAPI
from streamservice.core.db import init_db
from streamservice.api.v1 import videos, health
from streamservice.core.config import settings
from streamservice.core.logging_config import configure_logging
import os

app = FastAPI(title=settings.PROJECT_NAME)

@app.on_event("startup")
def on_startup():
    configure_logging()
    init_db()
    os.makedirs(settings.VIDEOS_DIR, exist_ok=True)

@app.get("/")
def read_root():
    return {"message": "Welcome to StreamService API"}

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(videos.router, prefix="/api/videos", tags=["videos"])
