from prometheus_fastapi_instrumentator import Instrumentator

from scanid.core.config import settings
from scanid.core.logging import configure_logging
from . import app as scanid_app

configure_logging(settings.LOG_LEVEL)
app = scanid_app
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


def run() -> None:
    import uvicorn

    uvicorn.run("scanid.main:app", host=settings.HOST, port=settings.PORT)
