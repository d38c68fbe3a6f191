import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskboard.board_routes import board_router
from taskboard.card_routes import card_router
from taskboard.config import LLM_CONFIG
from taskboard.database import init_db
from taskboard.insights import GeminiInsightClient
from taskboard.list_routes import list_router
from taskboard.user_routes import user_router

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logging.info("Database initialized")
    app.state.insight_client = GeminiInsightClient(LLM_CONFIG)
    if not app.state.insight_client.is_configured:
        logging.warning("GEMINI_API_KEY is not set; AI insights are disabled")
    yield


app = FastAPI(title="Task Board", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user_router)
app.include_router(board_router)
app.include_router(list_router)
app.include_router(card_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
