from __future__ import annotations

import json
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List

import yaml


class CommandError(RuntimeError):
    """A command could not be spawned, timed out, or exited non-zero."""

    def __init__(self, cmd: List[str], returncode: int | None, output: str) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        status = "timeout" if returncode is None else str(returncode)
        super().__init__(f"Command failed ({status}): {pretty_cmd(cmd)}\n{output}".rstrip())


def pretty_cmd(cmd: List[str]) -> str:
    return " ".join(shlex.quote(str(token)) for token in cmd)


def with_sudo(cmd: List[str], use_sudo: bool) -> List[str]:
    return ["sudo", *cmd] if use_sudo else cmd


def run_command(
    cmd: List[str],
    *,
    check: bool = True,
    timeout_s: float | None = None,
) -> subprocess.CompletedProcess[str]:
    try:
        proc = subprocess.run(
            cmd,
            check=False,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout_s,
        )
    except OSError as exc:
        raise CommandError(cmd, -1, str(exc)) from exc
    except subprocess.TimeoutExpired as exc:
        out = exc.output or ""
        if isinstance(out, bytes):
            out = out.decode("utf-8", errors="replace")
        raise CommandError(cmd, None, out.strip()) from exc
    if check and proc.returncode != 0:
        raise CommandError(cmd, proc.returncode, (proc.stdout or "").strip())
    return proc


def resolve_clab_bin(preferred: str = "") -> str:
    if preferred:
        return preferred
    for candidate in ("clab", "containerlab"):
        found = shutil.which(candidate)
        if found:
            return found
    raise RuntimeError("Cannot find `clab` or `containerlab` in PATH.")


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ValueError(f"YAML file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping YAML: {path}")
    return data


def dump_json(path: str | Path, obj: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2, sort_keys=True)


def resolve_path(path_value: str, base_dir: Path) -> Path:
    path = Path(path_value).expanduser()
    if path.is_absolute():
        return path.resolve()
    base_candidate = (base_dir / path).resolve()
    if base_candidate.exists():
        return base_candidate
    cwd_candidate = (Path.cwd() / path).resolve()
    if cwd_candidate.exists():
        return cwd_candidate
    return base_candidate
