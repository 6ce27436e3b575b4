import logging
import subprocess
from pathlib import Path
from typing import Optional

from mixpkg.core.config import get_config
from mixpkg.core.errors import SignatureVerificationFailed
from mixpkg.core.utils import run_cmd

log = logging.getLogger(__name__)


def signed_file_for(signature_name: str) -> Optional[str]:
    """Return the name of the file a detached signature covers, or None if it isn't a signature.

    A file is a signature when its name ends with one of the configured signature extensions.
    """
    for extension in get_config().signature_extensions:
        if signature_name.endswith(extension) and len(signature_name) > len(extension):
            return signature_name[: -len(extension)]
    return None


def verify_detached_signature(signature_path: Path, data_path: Path) -> None:
    """Verify a detached signature with the configured signature command.

    The command is invoked as ``<signature_command> <signature> <data>``.

    :param signature_path: the detached signature
    :param data_path: the signed file
    :raises SignatureVerificationFailed: if the command rejects the signature
    :raises ExecutableNotFound: if the signature command is not installed
    """
    cmd = [*get_config().signature_command, str(signature_path), str(data_path)]
    log.info("Verifying signature %s", signature_path.name)
    try:
        run_cmd(cmd, {"cwd": signature_path.parent})
    except subprocess.CalledProcessError as e:
        raise SignatureVerificationFailed(signature_path.name, stderr=e.stderr) from None
