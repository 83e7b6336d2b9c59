from pathlib import Path
from dotenv import load_dotenv
import logging
import os

# ========================================
# Load .env from the project root
# ========================================
BASE_DIR = Path(__file__).resolve().parent.parent
env_path = BASE_DIR / ".env"
load_dotenv(env_path)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.errors import VisionError
from api.routers.vision import router as vision_router


# ========================================
# Initialize FastAPI
# ========================================
app = FastAPI(title="CatchSmart Vision API")


# ========================================
# CORS (web + mobile app frontends)
# ========================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Errors -> {"error": message}
# ========================================
@app.exception_handler(VisionError)
async def vision_error_handler(request: Request, exc: VisionError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# ========================================
# Register Routers
# ========================================

# Photo -> equipment items
app.include_router(vision_router)


# ========================================
# Root
# ========================================
@app.get("/")
def root():
    return {"message": "CatchSmart Vision API running"}
