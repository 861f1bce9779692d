"""Entrypoint: run the RAG Core server."""

import uvicorn

from rag_core.api.app import create_app
from rag_core.config.settings import Settings


def main() -> None:
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
