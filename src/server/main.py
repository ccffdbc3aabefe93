import sys
import os
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

# Add src to sys.path so the flat modules import the same way everywhere
current_dir = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.dirname(current_dir)
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from server.api import router as api_router
import config

# Configure logging
logging.basicConfig(
    level=config.LOGGING_LEVEL,
    format=config.LOGGING_FORMAT,
)

app = FastAPI(
    title="Investa Performance API",
    description="Portfolio XIRR and benchmark replay",
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed or mistyped request bodies are client errors
    logging.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": f"Invalid request: {exc.errors()}"},
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "Investa Performance API is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server.main:app", host="0.0.0.0", port=8000, reload=True)
