"""Allow `python -m sealgate` to run the agent with uvicorn."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "sealgate.main:app",
        host=os.getenv("SEAL_HOST", "127.0.0.1"),
        port=int(os.getenv("SEAL_PORT", "8765")),
    )


if __name__ == "__main__":  # pragma: no cover - manual execution path
    main()
