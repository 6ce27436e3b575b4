import textwrap
from pathlib import Path
from typing import ClassVar

from mixpkg import APP_NAME

_argument_not_specified = "__argument_not_specified__"

_exit_codes: dict[str, int] = {
    "BaseError": 1,
    "UsageError": 2,
    "PathOutsideRoot": 3,
    "ExecutableNotFound": 4,
    "RecipeInvalid": 5,
    "SourceNotFound": 6,
    "FetchError": 7,
    "VerificationFailed": 8,
    "ChecksumVerificationFailed": 9,
    "SignatureVerificationFailed": 10,
    "MissingChecksum": 11,
    "ExtractionFailed": 12,
    "StageMissing": 13,
    "StageFailed": 14,
    "ArchiveCreationFailed": 15,
}
if len(_exit_codes) != len(set(_exit_codes.values())):
    raise ValueError("Duplicate exit codes found")


class BaseError(Exception):
    """Root of the error hierarchy. Don't raise this directly, use more specific error types."""

    exit_code: ClassVar[int] = 1
    default_solution: ClassVar[str | None] = None

    def __init__(
        self,
        reason: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize BaseError.

        :param reason: explain what went wrong
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(reason)
        if solution == _argument_not_specified:
            self.solution = self.default_solution
        else:
            self.solution = solution

    def __init_subclass__(cls) -> None:
        class_name = cls.__name__
        if class_name not in _exit_codes:
            raise ValueError(f"No exit code found for {class_name}")
        cls.exit_code = _exit_codes[class_name]
        super().__init_subclass__()

    def friendly_msg(self) -> str:
        """Return the user-friendly representation of this error."""
        msg = str(self)
        if self.solution:
            msg += f"\n{textwrap.indent(self.solution, prefix='  ')}"
        return msg


class UsageError(BaseError):
    """Generic error for "mixpkg was used incorrectly." Prefer more specific errors."""


class PathOutsideRoot(UsageError):
    """After joining a subpath, the result is outside the root of a rooted path."""

    def __init__(
        self,
        s_self: str,
        s_other: str = "",
        s_root: str = "",
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize a PathOutsideRoot.

        :param s_self: The current path before joining.
        :param s_other: The path component that was joined.
        :param s_root: The root directory that must not be left.
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Path {s_self}/{s_other} outside {s_root}, refusing to proceed"
        super().__init__(reason, solution=solution)

    default_solution = (
        f"With security in mind, {APP_NAME} will not write files outside the "
        "source and package directories."
    )


class ExecutableNotFound(UsageError):
    """A required executable was not found in PATH."""

    def __init__(
        self,
        executable: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize ExecutableNotFound.

        :param executable: Name of the executable that was not found
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"{executable!r} executable not found in PATH"
        super().__init__(reason, solution=solution)

    default_solution = (
        "Please make sure that the required executable is installed in your PATH,\n"
        f"or point {APP_NAME} to a different one in the configuration file."
    )


class RecipeInvalid(UsageError):
    """The recipe could not be read, or a mandatory field is missing or malformed."""

    def __init__(
        self,
        recipe_path: Path | str,
        err_details: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize RecipeInvalid.

        :param recipe_path: Path to the offending recipe
        :param err_details: What exactly is wrong with it
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Recipe '{recipe_path}' is not valid: {err_details}"
        super().__init__(reason, solution=solution)

    default_solution = "Check the recipe syntax and make sure pkgname, pkgver, pkgrel and arch are set."


class SourceNotFound(UsageError):
    """A local source (or auxiliary file) declared by the recipe does not exist."""

    def __init__(
        self,
        path: Path | str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize SourceNotFound.

        :param path: The path that was expected to exist
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(f"Source file not found: {path}", solution=solution)

    default_solution = "Local sources are looked up relative to the directory of the recipe."


class FetchError(BaseError):
    """The Application failed to fetch a source needed to build the package."""

    default_solution = (
        "The error might be intermittent, please try again.\n"
        "Files that were already downloaded will not be fetched again."
    )


class VerificationFailed(BaseError):
    """A source failed integrity verification."""


class ChecksumVerificationFailed(VerificationFailed):
    """Checksum verification failed for a file."""

    def __init__(
        self,
        filename: Path | str,
        algorithm: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize ChecksumVerificationFailed.

        :param filename: Name of the file that failed checksum verification
        :param algorithm: The checksum algorithm that was used
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Failed to verify {filename} against its {algorithm} checksum"
        super().__init__(reason, solution=solution)

    default_solution = (
        "Verify that the file has not been corrupted and that the expected checksums are correct."
    )


class SignatureVerificationFailed(VerificationFailed):
    """The detached signature of a source did not verify."""

    def __init__(
        self,
        signature: Path | str,
        *,
        stderr: str | None = None,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize SignatureVerificationFailed.

        :param signature: Name of the signature file
        :param stderr: output of the verification command
        :param solution: politely suggest a potential solution to the user
        """
        self.stderr = stderr
        super().__init__(f"Signature verification failed for {signature}", solution=solution)

    default_solution = (
        "Make sure the signing key is present in your keyring, "
        "or pass --nogpg to skip signature checks."
    )


class MissingChecksum(VerificationFailed):
    """The recipe declares no checksums and the run does not tolerate that."""

    default_solution = "Add a checksum table (e.g. sha256sums) or use --mode=permissive."


class ExtractionFailed(BaseError):
    """A source was recognized as an archive but could not be extracted."""


class StageMissing(UsageError):
    """A mandatory stage hook is not declared by the recipe."""

    def __init__(
        self,
        stage: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize StageMissing.

        :param stage: Name of the missing stage
        :param solution: politely suggest a potential solution to the user
        """
        self.stage = stage
        super().__init__(f"Missing {stage} step in the recipe", solution=solution)

    default_solution = "Declare the stage under the 'stages' key of the recipe."


class StageFailed(BaseError):
    """A stage hook could not be started or exited unsuccessfully."""

    def __init__(
        self,
        stage: str,
        reason: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize StageFailed.

        :param stage: Name of the failed stage
        :param reason: explain what went wrong
        :param solution: politely suggest a potential solution to the user
        """
        self.stage = stage
        super().__init__(f"The {stage} step failed: {reason}", solution=solution)

    default_solution = (
        "The output of the stage above should provide more details.\n"
        "The source and package directories are left in place for inspection."
    )


class ArchiveCreationFailed(BaseError):
    """The package archive could not be written."""
