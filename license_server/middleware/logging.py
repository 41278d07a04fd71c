from fastapi import Request
from datetime import datetime, timezone
import logging
import json

logger = logging.getLogger("license_server.requests")

class RequestLogMiddleware:
    async def __call__(self, request: Request, call_next):
        """Log request details and timing"""
        start_time = datetime.now(timezone.utc)

        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else None

        status_code = 500
        error_detail = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_detail = str(e)
            raise
        finally:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()

            log_data = {
                "timestamp": start_time.isoformat(),
                "path": path,
                "method": method,
                "status_code": status_code,
                "duration": f"{duration:.3f}s",
                "client_ip": client_ip
            }

            if error_detail:
                log_data["error"] = error_detail

            logger.info(json.dumps(log_data))

        return response

async def log_requests(request: Request, call_next):
    """Middleware function for request logging"""
    middleware = RequestLogMiddleware()
    return await middleware(request, call_next)
