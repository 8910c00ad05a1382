import argparse
import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db, get_db_path
from config import load_config, CONFIG_DIR
from utils.errors import QuizError
from routes import users, levels, video, reels, stats  # Import routers

logger = logging.getLogger("quizladder")

def configure_logging() -> None:
    level = load_config()["logging"]["level"]
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: init DB and config
    configure_logging()
    init_db()
    yield

app = FastAPI(
    title="QuizLadder",
    description="Reward and progression engine for gamified exam practice",
    lifespan=lifespan,
)

# Include routers
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(levels.router, prefix="/level", tags=["levels"])
app.include_router(video.router, prefix="/video", tags=["video"])
app.include_router(reels.router, prefix="/reels", tags=["reels"])
app.include_router(stats.router, prefix="/stats", tags=["stats"])

@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": QuizError.code, "message": QuizError.default_message},
    )

@app.get("/health")
def health():
    return {"status": "ok", "database": str(get_db_path())}

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="QuizLadder API")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    args = parser.parse_args()
    if args.init:
        configure_logging()
        init_db()
        print(f"DB initialized and config copied to {CONFIG_DIR}/")
        sys.exit(0)
    # Run server
    uvicorn.run("main:app", host="127.0.0.1", port=args.port, reload=args.dev, log_level="info")
