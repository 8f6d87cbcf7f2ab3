from __future__ import annotations

import http.client
import json
import threading
from typing import Any, Dict, Iterator, Optional, Tuple

import pytest

from test_service import FailingProver, FakeProver, _body

from typeproof.integration.api_server import ProofApiServer, TokenBucketRateLimiter, make_server
from typeproof.integration.config import ServerConfig, ServiceConfig
from typeproof.integration.prover import Prover
from typeproof.integration.service import ProofService

ORIGIN = "https://app.example"


def _start(prover: Prover, **server_kwargs: Any) -> ProofApiServer:
    server_cfg = dict(host="127.0.0.1", port=0, cors_origins=frozenset({ORIGIN}), rate_limit_rpm=0, max_body_bytes=16384)
    server_cfg.update(server_kwargs)
    config = ServiceConfig(server=ServerConfig(**server_cfg))
    httpd = make_server(config, ProofService(config, prover=prover))
    threading.Thread(target=httpd.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True).start()
    return httpd


@pytest.fixture
def server() -> Iterator[ProofApiServer]:
    httpd = _start(FakeProver())
    yield httpd
    httpd.shutdown()
    httpd.server_close()


def _request(
    httpd: ProofApiServer,
    method: str,
    path: str,
    body: Optional[object] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, http.client.HTTPMessage, Any]:
    host, port = httpd.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        data = None if body is None else json.dumps(body).encode("utf-8")
        send_headers = {"Content-Type": "application/json", **(headers or {})}
        conn.request(method, path, body=data, headers=send_headers)
        resp = conn.getresponse()
        raw = resp.read()
        return resp.status, resp.headers, json.loads(raw) if raw else None
    finally:
        conn.close()


def test_liveness_and_health(server: ProofApiServer) -> None:
    assert _request(server, "GET", "/")[::2] == (200, {"ok": True})
    assert _request(server, "GET", "/health")[::2] == (200, {"status": "healthy", "service": "typeproof-api"})
    assert _request(server, "GET", "/nope")[::2] == (404, {"error": "not found"})


def test_current_challenge(server: ProofApiServer) -> None:
    status, _, payload = _request(server, "GET", "/challenge/current?x=1")
    assert status == 200
    assert payload["challenge_id"] == 1
    assert len(payload["prompt_hash_hex"]) == 64


def test_prove_ok(server: ProofApiServer) -> None:
    status, _, payload = _request(server, "POST", "/prove", _body())
    assert status == 200
    assert payload["score"] == 12000
    assert payload["challenge_id"] == 5


def test_prove_rejects_invalid_request(server: ProofApiServer) -> None:
    status, _, payload = _request(server, "POST", "/prove", dict(_body(), challenge_id=-1))
    assert status == 400
    assert payload["kind"] == "invalid_challenge_id"


def test_prove_rejects_bad_json_and_missing_body(server: ProofApiServer) -> None:
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    conn.request("POST", "/prove", body=b"{not json", headers={"Content-Type": "application/json"})
    resp = conn.getresponse()
    assert resp.status == 400
    assert json.loads(resp.read()) == {"error": "invalid JSON body"}
    conn.close()

    status, _, payload = _request(server, "POST", "/prove", headers={"Content-Length": "0"})
    assert status == 400
    assert payload["kind"] == "missing_body"


def test_prove_requires_content_length(server: ProofApiServer) -> None:
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        conn.putrequest("POST", "/prove")
        conn.endheaders()
        resp = conn.getresponse()
        assert resp.status == 411
    finally:
        conn.close()


def test_prove_rejects_large_body(server: ProofApiServer) -> None:
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        conn.putrequest("POST", "/prove")
        conn.putheader("Content-Length", "100000")
        conn.endheaders()
        resp = conn.getresponse()
        assert resp.status == 413
        assert json.loads(resp.read()) == {"error": "request body too large"}
    finally:
        conn.close()


def test_prover_and_binding_failures() -> None:
    httpd = _start(FailingProver())
    try:
        assert _request(httpd, "POST", "/prove", _body())[::2] == (502, {"error": "prover timed out"})
    finally:
        httpd.shutdown()
        httpd.server_close()

    httpd = _start(FakeProver(score_delta=1))
    try:
        status, _, payload = _request(httpd, "POST", "/prove", _body())
        assert status == 500
        assert payload["error"].startswith("stats mismatch")
        assert payload["error"].endswith("in prover output")
    finally:
        httpd.shutdown()
        httpd.server_close()


def test_cors_is_default_deny(server: ProofApiServer) -> None:
    _, headers, _ = _request(server, "GET", "/", headers={"Origin": ORIGIN})
    assert headers["Access-Control-Allow-Origin"] == ORIGIN
    _, headers, _ = _request(server, "GET", "/", headers={"Origin": "https://evil.example"})
    assert headers.get("Access-Control-Allow-Origin") is None

    status, headers, _ = _request(server, "OPTIONS", "/prove", headers={"Origin": ORIGIN})
    assert status == 204
    assert "POST" in headers["Access-Control-Allow-Methods"]


def test_rate_limit() -> None:
    httpd = _start(FakeProver(), rate_limit_rpm=1)
    try:
        assert _request(httpd, "GET", "/")[0] == 200
        assert _request(httpd, "GET", "/")[::2] == (429, {"error": "rate_limited"})
    finally:
        httpd.shutdown()
        httpd.server_close()


def test_prove_answers_huge_json_integers(server: ProofApiServer) -> None:
    body = json.dumps(_body()).replace('"challenge_id": 5', '"challenge_id": ' + "9" * 5000)
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        conn.request("POST", "/prove", body=body.encode("utf-8"), headers={"Content-Type": "application/json"})
        resp = conn.getresponse()
        payload = json.loads(resp.read())
    finally:
        conn.close()
    assert resp.status == 400
    assert payload.get("error") == "invalid JSON body" or payload.get("kind") == "invalid_challenge_id"


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_token_bucket_refills_and_evicts_idle_clients() -> None:
    clock = _Clock()
    limiter = TokenBucketRateLimiter(rpm=2, now_fn=clock)
    assert limiter.allow("10.0.0.1")
    assert limiter.allow("10.0.0.1")
    assert not limiter.allow("10.0.0.1")
    clock.now += 30.0
    assert limiter.allow("10.0.0.1")

    for i in range(100):
        limiter.allow(f"10.1.0.{i}")
    assert limiter.bucket_count() == 101

    clock.now += 61.0
    assert limiter.allow("10.0.0.2")
    assert limiter.bucket_count() == 1


def test_token_bucket_is_shared_safely_between_threads() -> None:
    limiter = TokenBucketRateLimiter(rpm=5, now_fn=_Clock())
    results = []
    barrier = threading.Barrier(20)

    def _hit() -> None:
        barrier.wait()
        results.append(limiter.allow("10.0.0.1"))

    threads = [threading.Thread(target=_hit) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 5
