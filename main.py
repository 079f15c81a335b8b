"""Zork Agents: launcher. Serves the control API with uvicorn."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = os.getenv("PORT", "13015")


def main():
    parser = argparse.ArgumentParser(description="Zork Agents launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="World storage directory (default: ./data)")
    parser.add_argument("--reset", action="store_true",
                        help="Wipe the saved world before starting")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the server on code changes")
    args = parser.parse_args()

    from zork_agents.config import get_config
    from zork_agents.store import WorldStore

    data_dir = (args.data_dir or ROOT / "data").resolve()
    os.environ["ZORK_DATA_DIR"] = str(data_dir)

    config = get_config(data_dir)
    logging.basicConfig(
        level=config["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.reset:
        WorldStore(data_dir).reset()

    print(f"Starting Zork Agents on http://{HOST}:{PORT} ...")
    uvicorn.run(
        "zork_agents.app:create_app",
        factory=True,
        host=HOST,
        port=int(PORT),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
