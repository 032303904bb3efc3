import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database import init_db, is_initialized
from logging_config import configure_logging
from routers.certificates import router as certificates_router
from routers.notifications import router as notifications_router
from routers.vendors import router as vendors_router
from routers.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if not is_initialized():
        init_db()
    logger.info("Vendor compliance API started (mock mode: %s)", config.MOCK_MODE)
    yield


app = FastAPI(
    title="Vendor Compliance",
    description="Vendor insurance certificate compliance and notifications",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications_router)
app.include_router(vendors_router)
app.include_router(certificates_router)
app.include_router(webhooks_router)


@app.get("/")
async def health():
    return {"status": "ok", "service": "vendor-compliance", "mock_mode": config.MOCK_MODE}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8081)
