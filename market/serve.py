import uvicorn

from market.core.config import settings


def main() -> None:
    uvicorn.run("market.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
