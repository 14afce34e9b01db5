import uvicorn

from grs.core.config import settings


def main() -> None:
    uvicorn.run(
        "grs.server:app",
        host="0.0.0.0",
        port=settings.PORT,
        timeout_keep_alive=settings.SERVER_TIMEOUT,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )


if __name__ == "__main__":
    main()
