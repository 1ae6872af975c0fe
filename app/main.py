import logging

from fastapi import FastAPI
from app.api.endpoints import auth
from app.api.endpoints import requirements


from fastapi.middleware.cors import CORSMiddleware
from app.core.config import Settings

settings = Settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Mini AI App Portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(requirements.router, prefix="/requirements", tags=["requirements"])


@app.get("/health")
def health():
    return {"status": "OK"}
