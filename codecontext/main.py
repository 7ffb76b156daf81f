# Run from project root: uvicorn codecontext.main:app --reload

import logging

from fastapi import FastAPI

from codecontext.api.routes import router
from codecontext.mcp.server import mcp_router

logging.basicConfig(level=logging.INFO)


app = FastAPI(title="codecontext")
app.include_router(router)
app.include_router(mcp_router, prefix="/mcp")
