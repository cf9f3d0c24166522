"""Serve the backend API and the dashboard together on one local port."""
import os
import sys
from pathlib import Path

import uvicorn
from fastapi.staticfiles import StaticFiles

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
FRONTEND_DIR = ROOT / "frontend"


def load_app():
    # コンテナと同じく backend/ をルートにして main を読む
    sys.path.append(str(BACKEND_DIR))
    from main import app

    # CloudFront の /api/* 振り分けの代わり。API ルートが先にマッチする
    app.mount("/", StaticFiles(directory=str(FRONTEND_DIR), html=True), name="frontend")
    return app


if __name__ == "__main__":
    os.environ.setdefault("APP_ENV", "development")
    port = int(os.environ.get("PORT", "3001"))

    print(f"Backend:  {BACKEND_DIR}")
    print(f"Frontend: {FRONTEND_DIR}")
    print(f"Listening on http://localhost:{port}")

    uvicorn.run(load_app(), host="0.0.0.0", port=port)
