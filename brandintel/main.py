from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brandintel.agents.dispatcher import build_dispatcher
from brandintel.api.routes import research
from brandintel.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.dispatcher = build_dispatcher(settings)
    yield


app = FastAPI(
    title="BrandIntel",
    description="Brand research orchestration over deep research and social listening providers",
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


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "brandintel"}
