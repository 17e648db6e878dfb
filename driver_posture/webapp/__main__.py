from __future__ import annotations

from ..env import get_env
from . import create_app

app = create_app()

if __name__ == "__main__":
    # Local development server; deploy behind a WSGI server instead.
    app.run(
        host=get_env("HOST", "127.0.0.1") or "127.0.0.1",
        port=int(get_env("PORT", "5001") or 5001),
        debug=bool(get_env("DEBUG")),
    )
