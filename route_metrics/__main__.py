import uvicorn

from .config import BIND_HOST, LOG_LEVEL, PORT

if __name__ == "__main__":
    # Dev run: python -m route_metrics
    uvicorn.run("route_metrics.app:app", host=BIND_HOST, port=PORT, log_level=LOG_LEVEL.lower())
