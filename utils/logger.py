import logging
import os
import time
from datetime import date

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from config import config

# Formatted Data
formatted_date = date.today().strftime("%Y-%m-%d")

# Create logger
logger = logging.getLogger("gallery_logger")
logger.setLevel(logging.DEBUG)

# Formatter
formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

# Avoid adding handlers multiple times if reloaded
if not logger.handlers:
    os.makedirs(config.LOG_DIR, exist_ok=True)
    file_handler = logging.FileHandler(
        os.path.join(config.LOG_DIR, f"gallery-{formatted_date}.log")
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)


# Request/Response Logging Middleware
class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request line and its outcome.

    Bodies are never read here: uploads can be several megabytes of binary or
    base64 data, so only the declared content type and length are logged.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        content_type = request.headers.get("content-type", "")
        content_length = request.headers.get("content-length", "0")

        try:
            logger.info(
                f"Request: {request.method} {request.url.path} | "
                f"Content-Type: {content_type or '-'} | Length: {content_length}"
            )

            response: Response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Response: {request.method} {request.url.path} | "
                f"Status: {response.status_code} | Time: {process_time:.2f}ms"
            )

            return response

        except Exception as e:
            logger.error(
                f"Error in {request.method} {request.url.path}: {str(e)}",
                exc_info=True,
            )

            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "message": "Unexpected error"},
            )
