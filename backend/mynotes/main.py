from contextlib import asynccontextmanager

from fastapi import FastAPI

from mynotes.api import notes
from mynotes.core.config import Settings
from mynotes.core.logging import setup_logging

setup_logging(Settings.from_env().log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # let fire-and-forget remote calls finish before the process exits
    notes.dispatcher.drain(timeout=10)
    notes.dispatcher.shutdown()


app = FastAPI(title="MyNotes API", lifespan=lifespan)
app.include_router(notes.router)


@app.get("/health")
def health():
    return {"ok": True}
