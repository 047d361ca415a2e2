"""Interpreter verification by bounded launch probes."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Sequence

LOGGER = logging.getLogger(__name__)

HELP_ARGUMENT = "--help"
DEFAULT_LAUNCHER: tuple[str, ...] = ("python",)
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
CANNOT_EXECUTE_REASON = "cannot execute interpreter"


@dataclass(frozen=True, slots=True)
class ProbeOutcome:
    """Result of one attempt to launch the interpreter.

    ``launched`` is False for launch-level errors only: the process could not
    be started, was killed by a signal, or exceeded the timeout. A non-zero
    exit code still counts as launched.
    """

    command: tuple[str, ...]
    launched: bool
    return_code: int | None = None
    timed_out: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Success, or failure carrying a short human-readable reason."""

    success: bool
    reason: str | None = None
    probes: tuple[ProbeOutcome, ...] = ()

    @property
    def probe_count(self) -> int:
        return len(self.probes)


ProbeRunner = Callable[[Sequence[str], float], ProbeOutcome]


def run_probe(command: Sequence[str], timeout_seconds: float) -> ProbeOutcome:
    """Launch ``command`` once with no stdin and discarded output, bounded by a timeout."""

    argv = tuple(command)
    LOGGER.debug("Probing interpreter: %s (timeout=%ss)", argv, timeout_seconds)
    try:
        completed = subprocess.run(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=timeout_seconds,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return ProbeOutcome(
            command=argv,
            launched=False,
            timed_out=True,
            error=f"timed out after {timeout_seconds:g}s",
        )
    except OSError as exc:
        return ProbeOutcome(command=argv, launched=False, error=str(exc))

    if completed.returncode < 0:
        return ProbeOutcome(
            command=argv,
            launched=False,
            return_code=completed.returncode,
            error=f"terminated by signal {-completed.returncode}",
        )
    return ProbeOutcome(command=argv, launched=True, return_code=completed.returncode)


def build_probe_command(path: str, launcher: Sequence[str], *args: str) -> list[str]:
    return [*launcher, path, *args]


def verify(
    path: str,
    *,
    launcher: Sequence[str] = DEFAULT_LAUNCHER,
    timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    probe: ProbeRunner = run_probe,
) -> VerificationResult:
    """Decide whether the interpreter at ``path`` can be launched.

    The help probe runs first. The bare probe runs only after the help probe
    hits a launch-level error. Exit codes are ignored in both attempts.
    """

    help_outcome = probe(build_probe_command(path, launcher, HELP_ARGUMENT), timeout_seconds)
    if help_outcome.launched:
        LOGGER.info("Interpreter %s answered the help probe", path)
        return VerificationResult(success=True, probes=(help_outcome,))

    LOGGER.debug("Help probe failed for %s: %s", path, help_outcome.error)
    bare_outcome = probe(build_probe_command(path, launcher), timeout_seconds)
    probes = (help_outcome, bare_outcome)
    if bare_outcome.launched:
        LOGGER.info("Interpreter %s answered the bare probe", path)
        return VerificationResult(success=True, probes=probes)

    LOGGER.warning("Interpreter %s could not be executed: %s", path, bare_outcome.error)
    return VerificationResult(success=False, reason=CANNOT_EXECUTE_REASON, probes=probes)
