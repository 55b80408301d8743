# Run from project root: uvicorn kb_assistant.main:app --reload

import logging

from fastapi import FastAPI

from kb_assistant.api.routes import router

logging.basicConfig(level=logging.INFO)


app = FastAPI(title="Knowledge-base Assistant Agent")
app.include_router(router)
