"""
Service configuration.

Every component takes its configuration as an explicit value at construction
time. ``load_config`` layers: dataclass defaults, then an optional YAML file,
then ``TYPEPROOF_*`` environment variables.

YAML layout (all sections and keys optional):

    challenge: {challenge_id: 1, prompt: "..."}
    validator: {max_prompt_chars: 256, max_events: 4096, enforce_timing: true, min_dt_ms: 10}
    binding:   {max_seal_bytes: 4096}
    prover:    {enabled: true, host_bin: /abs/path, timeout_s: 600, receipt_kind: groth16}
    server:    {host: 127.0.0.1, port: 8787, cors_origins: [...], rate_limit_rpm: 600, max_body_bytes: 1000000}
    verifier_selector_hex: "a1b2c3d4"
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, FrozenSet, Mapping, Optional, Set, Union

import yaml

from ..core.errors import FormatError, TypeProofError
from ..core.keys import U16_MAX
from ..core.scoring import MIN_DT_MS
from ..state.canonical import hex_to_bytes_fixed

DEFAULT_CHALLENGE_ID = 1
DEFAULT_CHALLENGE_PROMPT = "the quick brown fox jumps over the lazy dog"
U32_MAX = 0xFFFF_FFFF


class ConfigError(TypeProofError, ValueError):
    pass


@dataclass(frozen=True)
class ChallengeConfig:
    challenge_id: int = DEFAULT_CHALLENGE_ID
    prompt: str = DEFAULT_CHALLENGE_PROMPT

    def __post_init__(self) -> None:
        if isinstance(self.challenge_id, bool) or not isinstance(self.challenge_id, int):
            raise ConfigError("challenge_id must be an int")
        if not (0 <= self.challenge_id <= U32_MAX):
            raise ConfigError("challenge_id must fit in u32")
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise ConfigError("challenge prompt must be a non-empty string")


@dataclass(frozen=True)
class ValidatorConfig:
    max_prompt_chars: int = 256
    max_events: int = 4096
    # Reject replays the proving guest would abort on (see timing_warnings).
    enforce_timing: bool = True
    min_dt_ms: int = MIN_DT_MS

    def __post_init__(self) -> None:
        if self.max_prompt_chars <= 0:
            raise ConfigError("max_prompt_chars must be positive")
        if not (0 <= self.max_events <= U16_MAX):
            raise ConfigError("max_events must be in [0, 65535]")
        if self.min_dt_ms < 0:
            raise ConfigError("min_dt_ms must be non-negative")


@dataclass(frozen=True)
class BindingConfig:
    # None disables the seal size check.
    max_seal_bytes: Optional[int] = 4096

    def __post_init__(self) -> None:
        if self.max_seal_bytes is not None and self.max_seal_bytes <= 0:
            raise ConfigError("max_seal_bytes must be positive")


@dataclass(frozen=True)
class ProverConfig:
    enabled: bool = True
    # Path to the typing-proof-host binary; None means TYPING_PROOF_HOST_BIN
    # or the default cargo release location.
    host_bin: Optional[str] = None
    # If False, host_bin must be an absolute path (fail-closed).
    allow_path_lookup: bool = False
    timeout_s: float = 600.0
    receipt_kind: str = "groth16"
    max_stdout_bytes: int = 1_000_000
    max_stderr_bytes: int = 64_000


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787
    cors_origins: FrozenSet[str] = field(default_factory=frozenset)
    rate_limit_rpm: int = 600
    max_body_bytes: int = 1_000_000


@dataclass(frozen=True)
class ServiceConfig:
    challenge: ChallengeConfig = field(default_factory=ChallengeConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    binding: BindingConfig = field(default_factory=BindingConfig)
    prover: ProverConfig = field(default_factory=ProverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    # 4-byte verifier router selector prepended to forwarded seals.
    verifier_selector_hex: Optional[str] = None

    def __post_init__(self) -> None:
        if self.verifier_selector_hex is not None:
            try:
                hex_to_bytes_fixed(self.verifier_selector_hex, nbytes=4, name="verifier_selector_hex")
            except FormatError as exc:
                raise ConfigError(str(exc)) from exc


def _env_int(env: Mapping[str, str], name: str, default: int, *, lo: int, hi: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_cors_origins(value: Union[str, list, tuple, set, frozenset, None]) -> FrozenSet[str]:
    """
    Parse CORS origins (comma-separated string or list).

    '*' is refused; operators must list trusted origins explicitly.
    """
    out: Set[str] = set()
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else list(value)
    for item in items:
        origin = str(item).strip()
        if not origin or origin == "*":
            continue
        out.add(origin)
    return frozenset(out)


def _section(cls: type, raw: Any, *, name: str) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"config section {name!r} must be a mapping")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown keys in config section {name!r}: {unknown}")
    if cls is ServerConfig and "cors_origins" in raw:
        raw = dict(raw, cors_origins=parse_cors_origins(raw["cors_origins"]))
    return cls(**raw)


def config_from_mapping(data: Mapping[str, Any]) -> ServiceConfig:
    if not isinstance(data, Mapping):
        raise ConfigError("config must be a mapping")
    sections = {
        "challenge": ChallengeConfig,
        "validator": ValidatorConfig,
        "binding": BindingConfig,
        "prover": ProverConfig,
        "server": ServerConfig,
    }
    unknown = sorted(set(data) - set(sections) - {"verifier_selector_hex"})
    if unknown:
        raise ConfigError(f"unknown config keys: {unknown}")
    try:
        kwargs = {name: _section(cls, data.get(name), name=name) for name, cls in sections.items()}
        return ServiceConfig(verifier_selector_hex=data.get("verifier_selector_hex"), **kwargs)
    except TypeError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc


def load_config_file(path: Union[str, Path]) -> ServiceConfig:
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    return config_from_mapping(data or {})


def apply_env_overrides(config: ServiceConfig, env: Mapping[str, str]) -> ServiceConfig:
    challenge = dataclasses.replace(
        config.challenge,
        challenge_id=_env_int(env, "TYPEPROOF_CHALLENGE_ID", config.challenge.challenge_id, lo=0, hi=U32_MAX),
        prompt=_env_str(env, "TYPEPROOF_CHALLENGE_PROMPT", config.challenge.prompt),
    )
    validator = dataclasses.replace(
        config.validator,
        max_prompt_chars=_env_int(env, "TYPEPROOF_MAX_PROMPT_CHARS", config.validator.max_prompt_chars, lo=1, hi=1_000_000),
        max_events=_env_int(env, "TYPEPROOF_MAX_EVENTS", config.validator.max_events, lo=0, hi=U16_MAX),
        enforce_timing=_env_bool(env, "TYPEPROOF_ENFORCE_TIMING", config.validator.enforce_timing),
    )
    max_seal = config.binding.max_seal_bytes
    if env.get("TYPEPROOF_MAX_SEAL_BYTES", "").strip():
        max_seal = _env_int(env, "TYPEPROOF_MAX_SEAL_BYTES", max_seal or 4096, lo=1, hi=100_000_000)
    binding = dataclasses.replace(config.binding, max_seal_bytes=max_seal)
    prover = dataclasses.replace(
        config.prover,
        host_bin=_env_str(env, "TYPING_PROOF_HOST_BIN", config.prover.host_bin),
        receipt_kind=_env_str(env, "TYPING_PROOF_RECEIPT_KIND", config.prover.receipt_kind) or "groth16",
    )
    cors_raw = _env_str(env, "TYPEPROOF_CORS_ORIGINS", None)
    server = dataclasses.replace(
        config.server,
        host=_env_str(env, "TYPEPROOF_HOST", config.server.host) or "127.0.0.1",
        port=_env_int(env, "TYPEPROOF_PORT", config.server.port, lo=1, hi=65535),
        cors_origins=parse_cors_origins(cors_raw) if cors_raw is not None else config.server.cors_origins,
        rate_limit_rpm=_env_int(env, "TYPEPROOF_RATE_LIMIT_RPM", config.server.rate_limit_rpm, lo=0, hi=1_000_000),
        max_body_bytes=_env_int(env, "TYPEPROOF_MAX_BODY_BYTES", config.server.max_body_bytes, lo=1, hi=100_000_000),
    )
    return ServiceConfig(
        challenge=challenge,
        validator=validator,
        binding=binding,
        prover=prover,
        server=server,
        verifier_selector_hex=_env_str(env, "TYPEPROOF_VERIFIER_SELECTOR_HEX", config.verifier_selector_hex),
    )


def load_config(path: Optional[Union[str, Path]] = None, env: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    env = os.environ if env is None else env
    if path is None:
        path = _env_str(env, "TYPEPROOF_CONFIG", None)
    config = load_config_file(path) if path else ServiceConfig()
    return apply_env_overrides(config, env)
