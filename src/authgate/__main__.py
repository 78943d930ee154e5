"""authgate entrypoint.

Run with:
  python -m authgate
"""

import uvicorn

from authgate.config import server_options


def main() -> None:
    # Full settings are read once, inside the app factory.
    host, port, reload = server_options()
    uvicorn.run("authgate.app:create_app", factory=True, host=host, port=port, reload=reload)

if __name__ == "__main__":
    main()
