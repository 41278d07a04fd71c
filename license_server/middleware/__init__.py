from .logging import log_requests
from .rate_limiter import RateLimiter
