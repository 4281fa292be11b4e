"""Entrypoint so `python -m backend.main` serves `backend.src.app.main:app`."""

from backend.src.app.main import app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
