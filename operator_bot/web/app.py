"""
HTTP entry point for the operator signal bot
FastAPI app with a single action endpoint
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..service import SignalBotService

logger = logging.getLogger(__name__)


class ActionRequest(BaseModel):
    action: Optional[str] = None
    botType: Optional[str] = None
    symbol: Optional[str] = None
    signalId: Optional[str] = None


def create_app(service: SignalBotService) -> FastAPI:
    """Build the FastAPI app around a configured service"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down operator signal bot")
        await service.provider.close()

    app = FastAPI(
        title="Operator Signal Bot",
        description="Market-structure signal generation and broadcast",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"]
    )

    app.state.service = service

    @app.get("/health")
    async def health():
        return {"status": "ok", "bots": sorted(service.config.bots)}

    @app.post("/")
    async def handle_action(request: ActionRequest):
        status, payload = await service.handle(request.model_dump())
        return JSONResponse(payload, status_code=status)

    return app
