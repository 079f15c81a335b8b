import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from zork_agents.agents import LLMGameMaster, LLMPlayerAgent, LLMRoomGenerator
from zork_agents.config import get_config
from zork_agents.engine import TurnEngine
from zork_agents.llm import LLM, HttpLLM
from zork_agents.routes import router
from zork_agents.session import SessionController
from zork_agents.store import WorldStore

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    session: SessionController = app.state.session
    await session.bootstrap()
    yield
    await session.close()


def create_app(data_dir: Path | None = None, *, llm: LLM | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("ZORK_DATA_DIR", str(DEFAULT_DATA_DIR)))
    config = get_config(resolved)
    store = WorldStore(resolved)

    if llm is None:
        llm = HttpLLM(**config["llm"])
    engine = TurnEngine(
        store,
        LLMPlayerAgent(llm),
        LLMGameMaster(llm),
        step_delay=config["step_delay_ms"] / 1000,
    )
    session = SessionController(
        store,
        engine,
        LLMRoomGenerator(llm),
        autoplay_interval=config["autoplay_interval_ms"] / 1000,
    )
    logger.info("World store at %s", store.snapshot_path)

    app = FastAPI(title="Zork Agents", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.store = store
    app.state.engine = engine
    app.state.session = session
    app.include_router(router, prefix="/api")
    return app
