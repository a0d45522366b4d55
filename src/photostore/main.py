"""
HTTP server entry point for photostore.

    photostore-server            # serves on HOST:PORT (0.0.0.0:8080 by default)
    uvicorn photostore.main:app  # same app under an external uvicorn
"""

import uvicorn

from .api import create_app
from .config import get_env, load_env_file

load_env_file()

app = create_app()


def main() -> None:
    """Run the API server."""
    uvicorn.run(
        app,
        host=get_env("HOST", "0.0.0.0"),
        port=get_env("PORT", 8080, int),
        log_config=None,
    )


if __name__ == "__main__":
    main()
