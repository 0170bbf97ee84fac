from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from pnl_tree_api import router as pnl_tree_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="P&L Tree API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pnl_tree_router)


@app.get("/")
def read_root():
    return {"message": "P&L Tree API is running"}
