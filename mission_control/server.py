# MISSION_CONTROL/server.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
from mission_control import config
from mission_control.core.logger import setup_logging
from mission_control.routers import mission_router

logger = setup_logging("server")

# --- ライフサイクル (起動時・終了時) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Mission Control Starting...")
    logger.info(f"📂 Local store DB: {config.SQLITE_DB_PATH}")
    system = mission_router.get_system()

    # 起動時同期 (失敗してもローカルで継続)
    source = await system.sync.async_pull()
    logger.info(f"Initial sync: {source}")

    yield

    system.sync.shutdown()
    logger.info("🛑 Mission Control Shutdown.")


app = FastAPI(lifespan=lifespan)

app.include_router(mission_router.router, prefix="/api/mission", tags=["Mission"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
async def health():
    return {"status": "ok"}


def main():
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)

if __name__ == "__main__":
    main()
