"""
External prover plumbing (imperative shell).

The proving engine is consumed as an opaque host binary:

    typing-proof-host <challenge_id> <player_pubkey_hex> <prompt> <events_hex>

which prints ``key: value`` lines on stdout (``image_id``, ``seal``,
``journal_sha256`` and ``journal.*`` public outputs).

Design goals:
- Fail-closed: any spawn/timeout/exit/parse problem is a ``ProverError``.
- Bounded: wall-clock timeout and stdout/stderr caps.
- One subprocess per submission; no shared state between calls.

IMPORTANT:
- Proving is slow (minutes). Timeouts here are wall-clock; callers decide
  whether a ``ProverError`` is worth retrying.
"""

from __future__ import annotations

import logging
import os
import select
import signal
import subprocess
import time
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from ..core.errors import ProverError
from ..state.proof import ProofArtifact, ProofRequest
from .config import ProverConfig

log = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_HOST_BIN = ROOT / "risc0" / "typing_proof" / "target" / "release" / "typing-proof-host"


class Prover:
    """Interface for producing a proof artifact from a validated request."""

    def prove(self, request: ProofRequest) -> ProofArtifact:
        raise NotImplementedError


class DisabledProver(Prover):
    def prove(self, request: ProofRequest) -> ProofArtifact:
        raise ProverError("prover disabled")


class MisconfiguredProver(Prover):
    def __init__(self, reason: str) -> None:
        self._reason = str(reason)

    def prove(self, request: ProofRequest) -> ProofArtifact:
        raise ProverError(self._reason)


def _parse_int(fields: Mapping[str, str], key: str) -> Optional[int]:
    raw = fields.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip(), 10)
    except ValueError:
        return None


def parse_prover_output(stdout: str) -> ProofArtifact:
    """Parse the host binary's ``key: value`` report."""
    fields: Dict[str, str] = {}
    for line in stdout.strip().splitlines():
        idx = line.find(":")
        if idx == -1:
            continue
        fields[line[:idx].strip()] = line[idx + 1 :].strip()

    score = _parse_int(fields, "journal.score")
    if score is None:
        raise ProverError("prover output missing journal.score")

    metrics = {}
    for key in ("journal.wpm_x100", "journal.accuracy_bps", "journal.duration_ms"):
        value = _parse_int(fields, key)
        if value is None:
            raise ProverError(f"prover output missing {key}")
        metrics[key.split(".", 1)[1]] = value

    for key in ("image_id", "seal", "journal_sha256"):
        if not fields.get(key):
            raise ProverError(f"prover output missing {key}")

    return ProofArtifact(
        score=score,
        image_id_hex=fields["image_id"],
        seal_hex=fields["seal"],
        journal_sha256_hex=fields["journal_sha256"],
        journal_challenge_id=_parse_int(fields, "journal.challenge_id"),
        journal_player_pubkey_hex=fields.get("journal.player_pubkey") or None,
        journal_prompt_hash_hex=fields.get("journal.prompt_hash") or None,
        **metrics,
    )


class SubprocessProver(Prover):
    """
    Prove by running the host binary.

    Any spawn/timeout/exit/parse error => ``ProverError``; the child's
    process group is killed on every early exit.
    """

    def __init__(
        self,
        *,
        cmd: Sequence[str],
        timeout_s: float,
        max_stdout_bytes: int,
        max_stderr_bytes: int,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not cmd:
            raise ValueError("cmd must be non-empty")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        if max_stdout_bytes <= 0:
            raise ValueError("max_stdout_bytes must be positive")
        if max_stderr_bytes <= 0:
            raise ValueError("max_stderr_bytes must be positive")
        self._cmd = list(cmd)
        self._timeout_s = float(timeout_s)
        self._max_stdout = int(max_stdout_bytes)
        self._max_stderr = int(max_stderr_bytes)
        self._env = dict(env) if env is not None else None

    def argv(self, request: ProofRequest) -> list:
        return self._cmd + [
            str(request.challenge_id),
            request.player_pubkey_hex,
            request.prompt,
            request.events_bytes.hex(),
        ]

    def prove(self, request: ProofRequest) -> ProofArtifact:
        argv = self.argv(request)
        started = time.monotonic()
        stdout = self._run(argv)
        log.info(
            "prover finished challenge_id=%s player=%s in %.1fs",
            request.challenge_id,
            request.player_pubkey_hex,
            time.monotonic() - started,
        )
        return parse_prover_output(stdout)

    def _run(self, argv: Sequence[str]) -> str:
        try:
            proc = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
                close_fds=True,
                bufsize=0,
                env=self._env,
            )
        except OSError as exc:
            raise ProverError(f"prover spawn error: {exc}") from exc

        def _kill_proc_group() -> None:
            # start_new_session=True makes the child its own process group leader.
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                return
            except OSError:
                try:
                    proc.kill()
                except OSError:
                    return

        def _fail(message: str) -> ProverError:
            _kill_proc_group()
            try:
                proc.wait(timeout=0.2)
            except subprocess.TimeoutExpired:
                pass
            log.warning("prover failed: %s", message)
            return ProverError(message)

        assert proc.stdout is not None and proc.stderr is not None
        try:
            stdout_buf = bytearray()
            stderr_buf = bytearray()
            open_streams = [proc.stdout, proc.stderr]

            deadline = time.monotonic() + self._timeout_s
            while open_streams:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise _fail("prover timed out")
                ready, _, _ = select.select(open_streams, [], [], min(0.1, remaining))
                for stream in ready:
                    chunk = os.read(stream.fileno(), 65536)
                    if not chunk:
                        open_streams.remove(stream)
                        continue
                    if stream is proc.stdout:
                        stdout_buf += chunk
                        if len(stdout_buf) > self._max_stdout:
                            raise _fail("prover stdout too large")
                    else:
                        stderr_buf += chunk
                        if len(stderr_buf) > self._max_stderr:
                            raise _fail("prover stderr too large")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise _fail("prover timed out")
            try:
                rc = proc.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                raise _fail("prover timed out") from None

            if rc != 0:
                err = stderr_buf.decode("utf-8", errors="replace").strip()
                raise _fail(f"prover failed (exit {rc}): {err[-2000:] or 'no stderr'}")

            return stdout_buf.decode("utf-8", errors="replace")
        finally:
            # Ensure the child is not left as a zombie, even if we returned early.
            if proc.returncode is None:
                _kill_proc_group()
                try:
                    proc.wait(timeout=0.2)
                except subprocess.TimeoutExpired:
                    pass


def child_env(config: ProverConfig, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.setdefault("TYPING_PROOF_RECEIPT_KIND", config.receipt_kind)
    env.setdefault("RISC0_PROVER", "local")
    return env


def resolve_host_bin(config: ProverConfig, env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    return config.host_bin or env.get("TYPING_PROOF_HOST_BIN") or str(DEFAULT_HOST_BIN)


def make_prover(config: ProverConfig, env: Optional[Mapping[str, str]] = None) -> Prover:
    if not config.enabled:
        return DisabledProver()
    bin_path = resolve_host_bin(config, env)
    if not config.allow_path_lookup:
        if not os.path.isabs(bin_path):
            return MisconfiguredProver(
                "prover misconfigured (host_bin must be an absolute path when allow_path_lookup=False)"
            )
        if not (os.path.isfile(bin_path) and os.access(bin_path, os.X_OK)):
            return MisconfiguredProver(
                f"typing-proof-host binary not found at {bin_path}. "
                "Build it with: cargo build --release -p typing-proof-host"
            )
    if os.name != "posix":
        return MisconfiguredProver(f"prover unsupported on platform: os.name={os.name!r}")
    return SubprocessProver(
        cmd=[bin_path],
        timeout_s=config.timeout_s,
        max_stdout_bytes=config.max_stdout_bytes,
        max_stderr_bytes=config.max_stderr_bytes,
        env=child_env(config, env),
    )
