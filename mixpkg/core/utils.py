import logging
import shutil
import subprocess
from collections.abc import Sequence
from typing import Any

from mixpkg.core.config import get_config
from mixpkg.core.errors import ExecutableNotFound

log = logging.getLogger(__name__)


def run_cmd(cmd: Sequence[str], params: dict[str, Any]) -> str:
    """Run the given command with provided parameters.

    :param iter cmd: iterable representing the command to be executed
    :param dict params: keyword parameters for command execution
    :returns: the command output
    :rtype: str
    :raises ExecutableNotFound: if the executable is not on PATH
    :raises CalledProcessError: if the command fails
    """
    params.setdefault("capture_output", True)
    params.setdefault("universal_newlines", True)
    params.setdefault("encoding", "utf-8")
    params.setdefault("timeout", get_config().subprocess_timeout)

    executable, *args = cmd
    executable_path = shutil.which(executable, path=params.get("env", {}).get("PATH"))
    if not executable_path:
        raise ExecutableNotFound(executable)

    log.debug("Running %s", " ".join(cmd))
    response = subprocess.run([executable_path, *args], **params)

    try:
        response.check_returncode()
    except subprocess.CalledProcessError:
        log.error('The command "%s" failed', " ".join(cmd))
        _log_error_output("STDERR", response.stderr)
        _log_error_output("STDOUT", response.stdout)
        raise

    return response.stdout


def _log_error_output(stream_name: str, output: str | None) -> None:
    if output:
        log.error("%s:\n%s", stream_name, output.rstrip())
