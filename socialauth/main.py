from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from socialauth.config import settings
from socialauth.models.database import engine, Base
from socialauth.api.routes import auth, accounts, health
from socialauth.utils.logging import setup_logger

logger = setup_logger(debug_mode=settings.DEBUG)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Social Login & Account Linking API",
    version="1.0.0",
    description="Resolves social platform logins to tenant-scoped identities and issues session tokens"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# Routes
app.include_router(auth.router)
app.include_router(accounts.router)
app.include_router(health.router)

@app.get("/")
async def root():
    return {"message": "Social Login & Account Linking API", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("socialauth.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
