"""Persona Chat: dev launcher. Starts the API server in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("PORT", "3000")


def main():
    parser = argparse.ArgumentParser(description="Persona Chat dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Message log and character storage directory (default: ./data)")
    parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    parser.add_argument("--port", default=BACKEND_PORT,
                        help=f"Listen port (default: {BACKEND_PORT})")
    parser.add_argument("--no-reload", action="store_true",
                        help="Disable auto-reload on source changes")
    args = parser.parse_args()

    # Build env for the subprocess so the app picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    cmd = ["uv", "run", "uvicorn", "backend.app:app", "--host", args.host, "--port", str(args.port)]
    if not args.no_reload:
        cmd.insert(4, "--reload")

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting API on http://localhost:{args.port} ...")
    procs.append(subprocess.Popen(cmd, cwd=ROOT, env=env))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
