"""Command-line entry point serving the application with uvicorn."""

import uvicorn

from zkprover.core.settings import ProverSettings


def main() -> None:
    settings = ProverSettings()
    uvicorn.run(
        "zkprover.core.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
