"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vicom.api.routes import router
from vicom.config import CORS_ORIGINS, FFMPEG_BIN, FFPROBE_BIN, OUTPUT_DIR, UPLOAD_DIR, logger as config_logger
from vicom.storage import init_dirs
from vicom.tools import resolve_binary
from vicom.transcode.service import get_transcode_service

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_dirs(UPLOAD_DIR, OUTPUT_DIR)
    tools = {
        "ffmpeg": resolve_binary("ffmpeg", FFMPEG_BIN),
        "ffprobe": resolve_binary("ffprobe", FFPROBE_BIN),
    }
    app.state.tools = tools
    svc = get_transcode_service()
    if tools["ffmpeg"].ok:
        svc.ffmpeg_bin = tools["ffmpeg"].selected[0]
    if tools["ffprobe"].ok:
        svc.prober.ffprobe_bin = tools["ffprobe"].selected[0]
    config_logger.info("Vicom API started")
    yield
    config_logger.info("Vicom API shutting down")


app = FastAPI(
    title="Vicom Video Compressor API",
    description="Compress videos to a target file size and serve the results with range support.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Accept-Ranges", "Content-Range", "Content-Length", "Content-Disposition", "ETag"],
)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from vicom.config import HOST, PORT
    uvicorn.run("vicom.main:app", host=HOST, port=PORT, reload=True)
