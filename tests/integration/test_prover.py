# [TESTER] v1

from __future__ import annotations

import os
import sys

import pytest

from typeproof.core.errors import ProverError
from typeproof.integration.config import ProverConfig
from typeproof.integration.prover import (
    DisabledProver,
    MisconfiguredProver,
    SubprocessProver,
    child_env,
    make_prover,
    parse_prover_output,
)
from typeproof.state.proof import ProofRequest

REQUEST = ProofRequest(
    challenge_id=3,
    player_pubkey=b"\xaa" * 32,
    prompt="hello world",
    events_bytes=bytes([1, 0, 100, 0, 7]),
    prompt_hash=b"\xbb" * 32,
)

REPORT = """\
image_id: 1111
seal: 2222
journal_sha256: 3333
journal.challenge_id: 3
journal.player_pubkey: {player}
journal.prompt_hash: {prompt_hash}
journal.score: 12000
journal.wpm_x100: 12000
journal.accuracy_bps: 10000
journal.duration_ms: 1100
"""

FAKE_HOST = """
import sys
challenge_id, player, prompt, events_hex = sys.argv[1:5]
assert prompt == "hello world", prompt
assert events_hex == "0100640007", events_hex
print("proving...")
print("image_id: " + "11" * 32)
print("seal: " + "22" * 8)
print("journal_sha256: " + "33" * 32)
print("journal.challenge_id: " + challenge_id)
print("journal.player_pubkey: " + player)
print("journal.score: 12000")
print("journal.wpm_x100: 12000")
print("journal.accuracy_bps: 10000")
print("journal.duration_ms: 1100")
"""


def _prover(script: str, **kwargs: object) -> SubprocessProver:
    params = dict(cmd=[sys.executable, "-c", script], timeout_s=10.0, max_stdout_bytes=10_000, max_stderr_bytes=10_000)
    params.update(kwargs)
    return SubprocessProver(**params)  # type: ignore[arg-type]


def test_parse_prover_output() -> None:
    artifact = parse_prover_output(REPORT.format(player="aa" * 32, prompt_hash="bb" * 32))
    assert artifact.score == 12000
    assert artifact.wpm_x100 == 12000
    assert artifact.accuracy_bps == 10000
    assert artifact.duration_ms == 1100
    assert artifact.image_id_hex == "1111"
    assert artifact.seal_hex == "2222"
    assert artifact.journal_sha256_hex == "3333"
    assert artifact.journal_challenge_id == 3
    assert artifact.journal_player_pubkey_hex == "aa" * 32
    assert artifact.journal_prompt_hash_hex == "bb" * 32


def test_parse_prover_output_requires_score_and_digests() -> None:
    report = REPORT.format(player="aa", prompt_hash="bb")
    with pytest.raises(ProverError, match="missing journal.score"):
        parse_prover_output(report.replace("journal.score: 12000\n", ""))
    with pytest.raises(ProverError, match="missing seal"):
        parse_prover_output(report.replace("seal: 2222\n", ""))
    with pytest.raises(ProverError, match="missing journal.duration_ms"):
        parse_prover_output(report.replace("journal.duration_ms: 1100", "journal.duration_ms: soon"))


def test_subprocess_prover_passes_request_as_argv() -> None:
    prover = _prover(FAKE_HOST)
    assert prover.argv(REQUEST)[-4:] == ["3", "aa" * 32, "hello world", "0100640007"]
    artifact = prover.prove(REQUEST)
    assert artifact.journal_challenge_id == 3
    assert artifact.journal_player_pubkey_hex == "aa" * 32
    assert artifact.seal_hex == "22" * 8


def test_subprocess_prover_nonzero_exit() -> None:
    prover = _prover("import sys; sys.stderr.write('boom'); sys.exit(3)")
    with pytest.raises(ProverError, match=r"prover failed \(exit 3\): boom"):
        prover.prove(REQUEST)


def test_subprocess_prover_times_out() -> None:
    prover = _prover("import time; time.sleep(10)", timeout_s=0.5)
    with pytest.raises(ProverError, match="timed out"):
        prover.prove(REQUEST)


def test_subprocess_prover_limits_stdout() -> None:
    prover = _prover("print('A' * 50000)", max_stdout_bytes=1000)
    with pytest.raises(ProverError, match="stdout too large"):
        prover.prove(REQUEST)


def test_subprocess_prover_missing_binary() -> None:
    prover = SubprocessProver(cmd=["/nonexistent/typing-proof-host"], timeout_s=1.0, max_stdout_bytes=10, max_stderr_bytes=10)
    with pytest.raises(ProverError, match="spawn error"):
        prover.prove(REQUEST)


def test_make_prover_disabled() -> None:
    prover = make_prover(ProverConfig(enabled=False), env={})
    assert isinstance(prover, DisabledProver)
    with pytest.raises(ProverError, match="disabled"):
        prover.prove(REQUEST)


def test_make_prover_requires_absolute_host_bin() -> None:
    prover = make_prover(ProverConfig(host_bin="typing-proof-host"), env={})
    assert isinstance(prover, MisconfiguredProver)
    with pytest.raises(ProverError, match="absolute path"):
        prover.prove(REQUEST)


def test_make_prover_reports_missing_binary(tmp_path) -> None:
    missing = str(tmp_path / "typing-proof-host")
    prover = make_prover(ProverConfig(), env={"TYPING_PROOF_HOST_BIN": missing})
    with pytest.raises(ProverError, match="cargo build"):
        prover.prove(REQUEST)


@pytest.mark.skipif(os.name != "posix", reason="subprocess prover is posix-only")
def test_make_prover_with_executable() -> None:
    prover = make_prover(ProverConfig(host_bin=sys.executable, receipt_kind="succinct"), env={})
    assert isinstance(prover, SubprocessProver)
    assert prover.argv(REQUEST)[0] == sys.executable


def test_child_env_defaults_do_not_override_caller() -> None:
    env = child_env(ProverConfig(receipt_kind="succinct"), {"RISC0_PROVER": "bonsai"})
    assert env["TYPING_PROOF_RECEIPT_KIND"] == "succinct"
    assert env["RISC0_PROVER"] == "bonsai"
