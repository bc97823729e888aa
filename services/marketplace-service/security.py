"""Security monitoring and rate limiting."""
import logging
import time
from typing import Dict, List, Optional
from collections import defaultdict
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
SUSPICIOUS_WINDOW_SECONDS = 300
# Keys idle for a full suspicious-activity window are dropped at most this often
SWEEP_INTERVAL_SECONDS = 60

# (lowest status, highest status, counter key suffix, threshold per window, activity type, log message)
SUSPICIOUS_PATTERNS = (
    (401, 401, "401", 5, "credential_stuffing", "Suspicious activity detected: Possible credential stuffing"),
    (404, 404, "404", 10, "endpoint_scanning", "Suspicious activity detected: Possible endpoint scanning"),
    (400, 499, "4xx", 20, "abuse", "Suspicious activity detected: High rate of client errors"),
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware to prevent abuse.

    Implements dual-tier sliding window rate limiting:
    - Per IP: Higher limit, since many clients may share one address
    - Per session token: Lower limit for an individual signed-in caller

    Windows are kept in process memory, so limits apply per worker.
    """

    def __init__(
        self,
        app,
        requests_per_minute_ip: int = 200,
        requests_per_minute_user: int = 60
    ):
        """
        Initialize rate limiter.

        Args:
            app: FastAPI application
            requests_per_minute_ip: Maximum requests per IP per minute
            requests_per_minute_user: Maximum requests per bearer token per minute
        """
        super().__init__(app)
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.request_counts: Dict[str, List[float]] = defaultdict(list)
        self._last_sweep = 0.0

    async def dispatch(self, request: Request, call_next):
        """
        Process request with dual-tier rate limiting.

        Returns:
            Response, or 429 with a Retry-After header if rate limited
        """
        # Get client IP (handle proxy headers)
        client_ip = request.client.host if request.client else "unknown"
        if "x-forwarded-for" in request.headers:
            client_ip = request.headers["x-forwarded-for"].split(",")[0].strip()

        token_key = None
        auth_header = request.headers.get("authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token_key = auth_header.split(" ", 1)[1][:16]

        now = time.time()

        if not self._allow(f"ip:{client_ip}", self.requests_per_minute_ip, now):
            return self._reject(request, "ip", self.requests_per_minute_ip, client_ip=client_ip)

        if token_key and not self._allow(f"user:{token_key}", self.requests_per_minute_user, now):
            return self._reject(request, "user", self.requests_per_minute_user, client_ip=client_ip)

        response = await call_next(request)

        self._detect_suspicious_activity(request, response.status_code, client_ip, now)

        return response

    def _allow(self, key: str, limit: int, now: float) -> bool:
        """Slide the window for ``key`` and record the request if under the limit."""
        self._sweep(now)
        window = [t for t in self.request_counts[key] if now - t < WINDOW_SECONDS]
        self.request_counts[key] = window
        if len(window) >= limit:
            return False
        window.append(now)
        return True

    def _sweep(self, now: float) -> None:
        """Forget clients whose newest request is older than every window."""
        if now - self._last_sweep < SWEEP_INTERVAL_SECONDS:
            return
        self._last_sweep = now

        stale = [
            key for key, stamps in self.request_counts.items()
            if not stamps or now - stamps[-1] >= SUSPICIOUS_WINDOW_SECONDS
        ]
        for key in stale:
            del self.request_counts[key]

        if stale:
            logger.debug("Evicted idle rate limit keys", extra={
                "evicted": len(stale),
                "remaining": len(self.request_counts)
            })

    def _reject(self, request: Request, limit_type: str, limit: int, client_ip: str) -> JSONResponse:
        rate_limit_exceeded_counter.add(1, {
            "endpoint": request.url.path,
            "limit_type": limit_type
        })
        logger.warning("Rate limit exceeded", extra={
            "limit_type": limit_type,
            "client_ip": client_ip,
            "endpoint": request.url.path,
            "limit": limit
        })
        return JSONResponse(
            status_code=429,
            content={"detail": f"Rate limit exceeded. Maximum {limit} requests per minute."},
            headers={"Retry-After": str(WINDOW_SECONDS)}
        )

    def _detect_suspicious_activity(
        self,
        request: Request,
        status_code: int,
        client_ip: str,
        now: Optional[float] = None
    ) -> None:
        """
        Flag bursts of failed auth, unknown paths and client errors per client.

        Args:
            request: The request
            status_code: Status of the response sent
            client_ip: Client IP address
            now: Current timestamp
        """
        now = now or time.time()
        for low, high, suffix, threshold, activity, message in SUSPICIOUS_PATTERNS:
            if not low <= status_code <= high:
                continue

            key = f"{client_ip}_{suffix}"
            recent = [t for t in self.request_counts[key] if now - t < SUSPICIOUS_WINDOW_SECONDS]
            recent.append(now)
            self.request_counts[key] = recent

            if len(recent) > threshold:
                suspicious_activity_counter.add(1, {"type": activity})
                logger.error(message, extra={
                    "client_ip": client_ip,
                    "count": len(recent),
                    "endpoint": request.url.path
                })
