import uvicorn

from categorag.config import settings


def main():
    uvicorn.run(
        "categorag.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
