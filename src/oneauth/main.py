"""FastAPI application serving the intent signer"""
import logging
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .api.signer import router as signer_router
from .core.config import DeveloperConfig
from .models.errors import ErrorResponse

logger = logging.getLogger(__name__)


def create_signer_app(config: Optional[DeveloperConfig] = None) -> FastAPI:
    """Build the signer app; credentials default to ONEAUTH_* environment variables"""
    app = FastAPI(
        title="1auth intent signer",
        description="Signs 1auth intents with the developer's Ed25519 key",
        version="0.1.0",
    )
    app.state.developer_config = config or DeveloperConfig.from_env()
    app.include_router(signer_router, prefix="", tags=["Signer"])

    @app.exception_handler(HTTPException)
    async def signer_exception_handler(request: Request, exc: HTTPException):
        """Render errors as {"error": message}"""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="An unexpected error occurred").model_dump(),
        )

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "credentials": "configured" if app.state.developer_config.is_complete else "missing",
        }

    return app


app = create_signer_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
