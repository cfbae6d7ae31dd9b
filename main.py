"""LifeQuest: dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="LifeQuest dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Wipe tables and create a demo account")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = (args.data_dir or ROOT / "data").resolve()

    if args.demo:
        from backend.demo import create_demo_data
        from lifequest.auth import TokenAuth
        from lifequest.storage import Storage

        auth = TokenAuth(
            os.getenv("JWT_SECRET", "lifequest-dev-secret"),
            float(os.getenv("JWT_EXPIRES_HOURS", "168")),
        )
        token = create_demo_data(Storage(data_dir), auth)
        print(f"Demo user token:\n{token}\n")

    # Subprocess env so the server picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir)

    print(f"Starting backend on http://localhost:{PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
