# portprobe/main.py
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings
from .router import router

settings = Settings.from_env()

app = FastAPI(
    title="portprobe",
    description="API to start TCP reachability scans and fetch their reports.",
    version=__version__,
)
app.state.settings = settings
app.state.connector = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


def run():
    uvicorn.run(
        "portprobe.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
