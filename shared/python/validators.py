"""
OSM Element Tracker — Shared Input Validators
==============================================
Static utility methods used to validate common preconditions before a
run begins.

All methods raise an appropriate exception from
:mod:`shared.python.exceptions` rather than returning booleans — this
keeps ``validate_inputs`` implementations simple and readable::

    class MyTool(TrackerTool):
        def validate_inputs(self) -> None:
            Validators.assert_file_exists(self.input_path)
            Validators.assert_executable_available("git")
"""

from __future__ import annotations

import shutil
from pathlib import Path

from shared.python.exceptions import InputValidationError, OutputWriteError


class Validators:
    """Collection of static precondition checks.

    All methods are ``@staticmethod`` — this class is never instantiated.
    It exists purely as a logical namespace.
    """

    # ------------------------------------------------------------------
    # File-system checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_file_exists(path: Path) -> None:
        """Assert that *path* points to an existing regular file.

        Args:
            path: Path object to check.

        Raises:
            InputValidationError: If *path* does not exist or is a
                directory rather than a file.

        Example::

            Validators.assert_file_exists(Path("examples/diff_way_query"))
        """
        path = Path(path)
        if not path.exists():
            raise InputValidationError(
                f"Input file not found: '{path}'. "
                "Check that the path is correct and the file exists."
            )
        if path.is_dir():
            raise InputValidationError(
                f"Expected a file but got a directory: '{path}'."
            )

    @staticmethod
    def assert_output_dir_writable(output_path: Path) -> None:
        """Assert that the parent directory of *output_path* is writable.

        Creates the parent directory (and any missing parents) if it does
        not yet exist.

        Args:
            output_path: Intended output file or directory path.

        Raises:
            OutputWriteError: If the parent directory cannot be created.
        """
        parent = Path(output_path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(str(output_path), str(exc)) from exc

    # ------------------------------------------------------------------
    # Environment checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_executable_available(name: str) -> None:
        """Assert that the executable *name* can be found on ``PATH``.

        Args:
            name: Program name, e.g. ``"git"``.

        Raises:
            InputValidationError: If the program is not installed.
        """
        if shutil.which(name) is None:
            raise InputValidationError(
                f"Required program '{name}' was not found on PATH. "
                "Install it before running the tracker."
            )
