"""Capability probing: try an ordered list of candidate invocations until one works."""
import io
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from PIL import Image

from vicom.config import REMBG_HELPER, REMBG_PROBE_TIMEOUT, REMBG_PYTHON_BIN, U2NET_HOME

logger = logging.getLogger("vicom.tools")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
COMMON_BIN_DIRS = ("/usr/local/bin", "/usr/bin", "/opt/homebrew/bin")


@dataclass
class Attempt:
    candidate: list[str]
    ok: bool
    detail: str = ""

    def to_dict(self) -> dict:
        return {"candidate": " ".join(self.candidate), "ok": self.ok, "detail": self.detail}


@dataclass
class CapabilityResult:
    ok: bool
    selected: Optional[list[str]] = None
    output: bytes = b""
    attempts: list[Attempt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "selected": " ".join(self.selected) if self.selected else None,
            "attempts": [a.to_dict() for a in self.attempts],
        }


def probe_candidates(
    candidates: Sequence[Sequence[str]],
    args: Sequence[str] = (),
    stdin: Optional[bytes] = None,
    accept: Optional[Callable[[bytes], bool]] = None,
    timeout: float = 15,
    env: Optional[dict] = None,
) -> CapabilityResult:
    """
    Run each candidate (argv prefix + args) in order; the first that exits 0 and whose
    stdout passes accept() wins. Every attempt is recorded either way.
    """
    result = CapabilityResult(ok=False)
    for candidate in candidates:
        cmd = [*candidate, *args]
        try:
            proc = subprocess.run(cmd, input=stdin, capture_output=True, timeout=timeout, env=env)
        except (OSError, subprocess.TimeoutExpired) as e:
            result.attempts.append(Attempt(list(candidate), False, f"{type(e).__name__}: {e}"))
            continue
        if proc.returncode != 0:
            detail = proc.stderr[-500:].decode("utf-8", errors="replace").strip()
            result.attempts.append(Attempt(list(candidate), False, f"exit {proc.returncode}: {detail}"))
            continue
        if accept is not None and not accept(proc.stdout):
            result.attempts.append(Attempt(list(candidate), False, "unexpected output"))
            continue
        result.attempts.append(Attempt(list(candidate), True))
        result.ok = True
        result.selected = list(candidate)
        result.output = proc.stdout
        break
    return result


def binary_candidates(name: str, preferred: Optional[str] = None) -> list[list[str]]:
    """Configured path, then PATH lookup, then common install locations; duplicates dropped."""
    ordered: list[str] = []
    for c in (preferred, shutil.which(name), *(str(Path(d) / name) for d in COMMON_BIN_DIRS)):
        if c and c not in ordered:
            ordered.append(c)
    return [[c] for c in ordered]


def resolve_binary(name: str, preferred: Optional[str] = None, timeout: float = 10) -> CapabilityResult:
    result = probe_candidates(binary_candidates(name, preferred), args=["-version"], timeout=timeout)
    if result.ok:
        logger.info("%s available: %s", name, result.selected[0])
    else:
        logger.warning("%s not available (tried %s)", name, ", ".join(a.to_dict()["candidate"] for a in result.attempts))
    return result


def tiny_png() -> bytes:
    """1x1 transparent PNG used to exercise the background-removal helper."""
    buf = io.BytesIO()
    Image.new("RGBA", (1, 1), (0, 0, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


def _decodes_as_image(data: bytes) -> bool:
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        return True
    except Exception:
        return False


def background_removal_health(
    python_bin: str = REMBG_PYTHON_BIN,
    helper: str = REMBG_HELPER,
    models_dir: str = U2NET_HOME,
    timeout: float = REMBG_PROBE_TIMEOUT,
) -> dict:
    """Pipe a tiny PNG through the helper (configured script first, then the rembg CLI)."""
    candidates = [[python_bin, helper]]
    rembg = shutil.which("rembg")
    if rembg:
        candidates.append([rembg, "i", "-", "-"])
    env = {**os.environ, "U2NET_HOME": models_dir}
    result = probe_candidates(candidates, stdin=tiny_png(), accept=_decodes_as_image, timeout=timeout, env=env)
    report = {"ok": result.ok, "modelsDir": models_dir, **{k: v for k, v in result.to_dict().items() if k != "ok"}}
    if result.ok:
        report["result"] = "PNG_OK" if result.output.startswith(PNG_SIGNATURE) else "BYTES_OK"
        report["bytes"] = len(result.output)
    return report
