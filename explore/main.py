# Run from project root: uvicorn explore.main:app --reload

import logging

from fastapi import FastAPI

from explore.api.routes import router
from explore.core.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL)


app = FastAPI(title="Explore Agent Backend")
app.include_router(router)
