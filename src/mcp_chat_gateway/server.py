"""FastAPI entry point streaming chat turns as Server-Sent Events."""

import argparse
import logging
from typing import Any, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from mcp_chat_gateway import __version__
from mcp_chat_gateway.config import GatewaySettings
from mcp_chat_gateway.gateway import ChatGateway
from mcp_chat_gateway.llm_core import ConversationHistory, Message, get_logger, setup_logging
from mcp_chat_gateway.transport import SSETransport

logger = get_logger(__name__)


class ChatRequest(BaseModel):
    message: Optional[str] = Field(None, description="New user message; blank messages add nothing to the history.")
    history: List[Message] = Field(default_factory=list, description="Prior messages of the conversation.")
    client: Optional[Any] = Field(None, description="Opaque client information, accepted and ignored.")

    @field_validator("history", mode="before")
    @classmethod
    def _normalize_roles(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        normalized = []
        for item in value:
            if isinstance(item, dict) and isinstance(item.get("role"), str):
                item = {**item, "role": item["role"].lower()}
            normalized.append(item)
        return normalized


def create_app(gateway: ChatGateway, settings: Optional[GatewaySettings] = None) -> FastAPI:
    settings = settings or GatewaySettings()

    app = FastAPI(title="MCP Chat Gateway", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.gateway = gateway
    app.state.settings = settings

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/monitor/chat/stream")
    async def chat_stream(body: ChatRequest, request: Request) -> StreamingResponse:
        logger.info("Chat request with %d history message(s).", len(body.history))
        history = ConversationHistory(body.history)
        transport = SSETransport(request.is_disconnected, emit_tool_events=app.state.settings.emit_tool_events)
        fragments = app.state.gateway.stream_turn(history, body.message)
        return StreamingResponse(
            transport.stream(fragments),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve streaming, tool-augmented chat over HTTP.")
    parser.add_argument("--host", help="Host interface to bind (default: GATEWAY_HOST or 0.0.0.0).")
    parser.add_argument("--port", type=int, help="Port to bind (default: GATEWAY_PORT or 8000).")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    parser.add_argument("--emit-tool-events", action="store_true", help="Forward tool activity as SSE events.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    settings = GatewaySettings.from_env()
    overrides: dict = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.emit_tool_events:
        overrides["emit_tool_events"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)

    app = create_app(ChatGateway.from_settings(settings), settings)
    logger.info("Starting chat gateway on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
