"""
HTTP API for the proof service.

Endpoints:
- GET  /                    liveness ({"ok": true})
- GET  /health              container health check
- GET  /challenge/current   current challenge and its prompt digest
- POST /prove               validate, prove, bind, return the forward payload

Security posture:
- Default-deny CORS (no wildcard, explicit allow-list only)
- Basic rate limiting (per-IP, token bucket)
- Tight request parsing and bounded request sizes
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from ..core.errors import BindingError, OversizedArtifactError, ProverError
from .config import ServiceConfig
from .service import ProofService
from .validation import RequestRejected

log = logging.getLogger(__name__)


@dataclass
class RateLimitBucket:
    tokens: float
    updated_at: float


class TokenBucketRateLimiter:
    """
    Per-IP token bucket, shared by the server's worker threads.

    A bucket idle for a full refill window is back at capacity, which is the
    same as having no bucket, so such buckets are swept out once per window.

    Target complexity: O(1) amortized per request.
    """

    WINDOW_S = 60.0

    def __init__(self, *, rpm: int, now_fn: Callable[[], float] = time.monotonic) -> None:
        self._rpm = int(max(0, rpm))
        self._capacity = float(max(1, rpm)) if rpm > 0 else 0.0
        self._refill_per_s = float(rpm) / self.WINDOW_S if rpm > 0 else 0.0
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._now = now_fn
        self._lock = threading.Lock()
        self._last_sweep = now_fn()

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def allow(self, key: str) -> bool:
        if self._rpm <= 0:
            return True
        with self._lock:
            now = self._now()
            if now - self._last_sweep >= self.WINDOW_S:
                self._sweep(now)
            b = self._buckets.get(key)
            if b is None:
                self._buckets[key] = RateLimitBucket(tokens=self._capacity - 1.0, updated_at=now)
                return True
            dt = max(0.0, now - float(b.updated_at))
            b.tokens = min(self._capacity, float(b.tokens) + dt * self._refill_per_s)
            b.updated_at = now
            if b.tokens >= 1.0:
                b.tokens -= 1.0
                return True
            return False

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        idle = [k for k, b in self._buckets.items() if now - b.updated_at >= self.WINDOW_S]
        for k in idle:
            del self._buckets[k]
        self._last_sweep = now


class _BodyError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class ProofApiServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: Tuple[str, int], service: ProofService) -> None:
        super().__init__(address, _Handler)
        self.service = service
        server_cfg = service.config.server
        self.cors_origins: FrozenSet[str] = server_cfg.cors_origins
        self.max_body_bytes = int(server_cfg.max_body_bytes)
        self.rate_limiter = TokenBucketRateLimiter(rpm=server_cfg.rate_limit_rpm)


class _Handler(BaseHTTPRequestHandler):
    server_version = "TypeProofApi/1"
    server: ProofApiServer

    # Bound request line / headers to avoid memory abuse.
    max_requestline = 8192
    max_headers = 100

    def _client_ip(self) -> str:
        # Trust boundary: we do NOT trust X-Forwarded-For.
        try:
            return str(self.client_address[0])
        except (IndexError, TypeError):
            return "unknown"

    def _allowed_cors_origin_or_none(self) -> Optional[str]:
        origin = self.headers.get("Origin")
        if not isinstance(origin, str) or not origin:
            return None
        return origin if origin in self.server.cors_origins else None

    def _write_json(self, status: int, obj: object) -> None:
        body = json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        cors_origin = self._allowed_cors_origin_or_none()
        self.send_response(int(status))
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Cache-Control", "no-store")
        self.send_header("Content-Length", str(len(body)))
        if cors_origin is not None:
            self.send_header("Access-Control-Allow-Origin", cors_origin)
            self.send_header("Vary", "Origin")
        self.end_headers()
        self.wfile.write(body)

    def _write_error(self, status: int, message: str, **extra: Any) -> None:
        self._write_json(status, {"error": message, **extra})

    def _path(self) -> str:
        return (getattr(self, "path", "") or "").split("?", 1)[0]

    def _read_json_body(self) -> Any:
        raw_len = self.headers.get("Content-Length")
        if raw_len is None:
            raise _BodyError(411, "Content-Length required")
        try:
            length = int(raw_len)
        except ValueError:
            raise _BodyError(400, "invalid Content-Length") from None
        if length < 0:
            raise _BodyError(400, "invalid Content-Length")
        if length > self.server.max_body_bytes:
            raise _BodyError(413, "request body too large")
        data = self.rfile.read(length) if length else b""
        if not data:
            return None
        try:
            return json.loads(data.decode("utf-8"))
        except ValueError:
            # Also covers int literals past the interpreter digit limit.
            raise _BodyError(400, "invalid JSON body") from None

    def do_OPTIONS(self) -> None:  # noqa: N802
        cors_origin = self._allowed_cors_origin_or_none()
        self.send_response(204)
        if cors_origin is not None:
            self.send_header("Access-Control-Allow-Origin", cors_origin)
            self.send_header("Access-Control-Allow-Methods", "GET,POST,OPTIONS")
            self.send_header("Access-Control-Allow-Headers", "Content-Type")
            self.send_header("Access-Control-Max-Age", "600")
            self.send_header("Vary", "Origin")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        if not self.server.rate_limiter.allow(self._client_ip()):
            self._write_error(429, "rate_limited")
            return

        path = self._path()
        if path == "/":
            self._write_json(200, {"ok": True})
            return
        if path == "/health":
            self._write_json(200, {"status": "healthy", "service": "typeproof-api"})
            return
        if path == "/challenge/current":
            self._write_json(200, self.server.service.current_challenge())
            return

        self._write_error(404, "not found")

    def do_POST(self) -> None:  # noqa: N802
        if not self.server.rate_limiter.allow(self._client_ip()):
            self._write_error(429, "rate_limited")
            return

        if self._path() != "/prove":
            self._write_error(404, "not found")
            return

        try:
            body = self._read_json_body()
        except _BodyError as exc:
            self.close_connection = True
            self._write_error(exc.status, exc.message)
            return

        try:
            outcome = self.server.service.prove(body)
        except RequestRejected as exc:
            self._write_error(400, exc.message, kind=exc.kind.value)
            return
        except ProverError as exc:
            self._write_error(502, str(exc) or "prover failed")
            return
        except OversizedArtifactError as exc:
            self._write_error(500, str(exc))
            return
        except BindingError as exc:
            self._write_error(500, f"{exc} in prover output")
            return

        self._write_json(200, outcome.forward_payload())

    def log_message(self, fmt: str, *args: object) -> None:
        # Avoid leaking headers/query strings; route through logging.
        msg = fmt % args if args else fmt
        log.info("%s %s => %s", self.command, self._path(), msg)


def make_server(config: ServiceConfig, service: Optional[ProofService] = None) -> ProofApiServer:
    service = service if service is not None else ProofService(config)
    return ProofApiServer((config.server.host, config.server.port), service)


def serve(config: ServiceConfig) -> int:
    httpd = make_server(config)
    host, port = httpd.server_address[:2]
    log.info(
        "typeproof-api listening on http://%s:%s (cors_origins=%s, rpm=%s)",
        host,
        port,
        sorted(config.server.cors_origins),
        config.server.rate_limit_rpm,
    )
    try:
        httpd.serve_forever(poll_interval=0.25)
    except KeyboardInterrupt:
        log.info("shutting down")
    finally:
        httpd.server_close()
    return 0
