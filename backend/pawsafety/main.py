"""ASGI entrypoint: FastAPI routes plus the Socket.IO chat namespace.

Run ``uvicorn pawsafety.main:socket_app`` so the ``/socket.io`` endpoint and
the REST routes share one port.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from pawsafety import container
from pawsafety.api import chat, ops, reports, social
from pawsafety.api.errors import install_error_handlers
from pawsafety.domain.chat.sockets import ChatNamespace
from pawsafety.obs import init as obs_init
from pawsafety.settings import settings

logger = logging.getLogger(__name__)

# Expo dev server and the Expo web preview.
_DEV_ORIGINS = ("http://localhost:8081", "http://localhost:19006")


def _cors_origins() -> List[str]:
	configured = [origin for origin in settings.cors_allow_origins if origin != "*"]
	if configured:
		return configured
	return list(_DEV_ORIGINS) if settings.is_dev() else []


@asynccontextmanager
async def lifespan(app: FastAPI):
	container.configure()
	logger.info("pawsafety backend started", extra={"environment": settings.environment})
	try:
		yield
	finally:
		await container.shutdown()
		logger.info("pawsafety backend stopped")


app = FastAPI(title="PawSafety Backend", lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

allow_origins = _cors_origins()
app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

for router in (chat.router, social.router, reports.router, ops.router):
	app.include_router(router)

if settings.is_dev():
	# Chat images written by LocalBlobStore; production serves them from a CDN.
	upload_root = Path(settings.upload_dir).resolve()
	upload_root.mkdir(parents=True, exist_ok=True)
	app.mount("/uploads", StaticFiles(directory=str(upload_root)), name="uploads")

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
sio.register_namespace(ChatNamespace())
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
