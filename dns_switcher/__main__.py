import uvicorn

from dns_switcher.config import Settings
from dns_switcher.main import create_app


def main() -> None:
    settings = Settings()  # fails here when router credentials are missing
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
