# run_all.py
import asyncio
import sys
from pathlib import Path

from gstbooks.core.config import settings

ROOT = Path(__file__).resolve().parent


async def run_process(name: str, cmd: list):
    """
    Runs a subprocess and streams logs to console.
    """
    print(f"▶ Starting {name}: {' '.join(cmd)}")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=ROOT,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    async def _pipe_reader(stream, prefix):
        while True:
            line = await stream.readline()
            if not line:
                break
            print(f"[{prefix}] {line.decode().rstrip()}")

    await asyncio.gather(
        _pipe_reader(process.stdout, name),
        _pipe_reader(process.stderr, name),
    )


async def main():
    # The token expiry watcher runs inside the app process (see gstbooks.main)
    uvicorn_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "gstbooks.main:app",
        "--reload",
        "--host", "0.0.0.0",
        "--port", "8000",
    ]

    processes = [run_process("APP", uvicorn_cmd)]
    if settings.CREDENTIAL_CACHE_BACKEND.lower() == "redis":
        processes.insert(0, run_process("REDIS", ["redis-server"]))

    await asyncio.gather(*processes)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Shutting down...")
