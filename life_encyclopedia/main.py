from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from life_encyclopedia.api.routes import people, research
from life_encyclopedia.config import settings
from life_encyclopedia.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event("startup", "Life Encyclopedia API starting")
    yield


app = FastAPI(
    title="Life Encyclopedia",
    description="Verified, citation-backed biographical timelines",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(research.router)
app.include_router(people.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "life-encyclopedia"}
