"""
Helpers for driving the `ably` command-line tool from tests.

The CLI is treated as a black box: it is spawned with arguments, and only its
exit code and output are inspected.
"""
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# Ably warns about token renewal with this code; it is not a failure
TOKEN_RENEWAL_CODE = "40171"
# Ably's "operation not permitted with provided capability" code
CAPABILITY_DENIED_CODE = "40160"

DENIAL_MARKERS = ("unauthorized", "forbidden", "capability", "permission", CAPABILITY_DENIED_CODE)


@dataclass
class CLIResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def output(self) -> str:
        return f"{self.stderr}\n{self.stdout}"


def run_ably_command(
    args: Sequence[str],
    timeout: float = 30.0,
    executable: str = "ably",
    env: Optional[dict] = None,
) -> CLIResult:
    """
    Runs the Ably CLI and collects its result.

    Args:
        args: Arguments after the executable, e.g. ``["channels", "publish", "presence", "{}"]``.
        timeout: Seconds before the process is killed.
        executable: The CLI to run.
        env: Environment for the child process. Defaults to the current one.

    Returns:
        A CLIResult. A process that could not be started reports exit code 1
        and the reason on stderr; a killed process reports ``timed_out``.
    """
    command: List[str] = [executable, *args]
    logger.info(f"Running: {' '.join(command)}")

    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env if env is not None else dict(os.environ),
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Command timed out after {timeout}s: {' '.join(command)}")
        return CLIResult(
            exit_code=-9,
            stdout=_text(e.stdout),
            stderr=_text(e.stderr),
            timed_out=True,
        )
    except OSError as e:
        return CLIResult(exit_code=1, stdout="", stderr=f"Process error: {e}")

    return CLIResult(
        exit_code=completed.returncode,
        stdout=completed.stdout.strip(),
        stderr=completed.stderr.strip(),
    )


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value.strip()


def has_cli_error(result: CLIResult) -> bool:
    """True when stderr reports an error other than the token renewal warning."""
    stderr = result.stderr
    return "error" in stderr.lower() and TOKEN_RENEWAL_CODE not in stderr


def is_capability_denied(result: CLIResult) -> bool:
    """True when the output shows Ably refused the operation for lack of capability."""
    output = result.output.lower()
    return any(marker in output for marker in DENIAL_MARKERS)


def publish_args(channel: str, message: str, token: Optional[str] = None) -> List[str]:
    args = ["channels", "publish", channel, message]
    if token:
        args += ["--token", token]
    return args + ["--json"]


def subscribe_args(channel: str, duration: int = 3, token: Optional[str] = None) -> List[str]:
    args = ["channels", "subscribe", channel]
    if token:
        args += ["--token", token]
    return args + ["--duration", str(duration), "--json"]
