"""Archive packager: wraps a dataset file into a password-protected AES-256 ZIP."""
import asyncio
import contextlib
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Union

from marketplace.errors import PackagingError, PackagingTimeout, SourceMissing

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

MAX_DIAGNOSTIC_CHARS = 2000


class Packager(ABC):
    """Builds one encrypted archive per call; implementations never cache archives."""

    @abstractmethod
    async def package_encrypted(self, source_path: PathLike, password: str, output_path: PathLike) -> None:
        """
        Write a single-file encrypted archive of ``source_path`` to ``output_path``.

        Raises:
            SourceMissing: source file does not exist
            PackagingError: the tool failed or produced no archive
            PackagingTimeout: the tool did not finish in time
        """


def remove_partial_output(output_path: PathLike) -> None:
    try:
        os.remove(output_path)
    except FileNotFoundError:
        pass


def scrub_diagnostics(text: str, password: str, *paths: PathLike) -> str:
    """Strip the password and server paths from tool output before it leaves the packager."""
    if password:
        text = text.replace(password, "***")
    # Longest first so a parent directory never splits a longer path
    for path in sorted((str(p) for p in paths if p), key=len, reverse=True):
        text = text.replace(path, "<path>")
    text = text.strip()
    if len(text) > MAX_DIAGNOSTIC_CHARS:
        text = text[:MAX_DIAGNOSTIC_CHARS] + "..."
    return text


class SevenZipPackager(Packager):
    """
    Packager backed by the 7-Zip command line tool.

    Produces a standard ZIP with AES-256 entry encryption, readable by any
    unarchiver that supports WinZip AES given the password.
    """

    def __init__(self, binary: str = "7z", timeout: float = 120.0):
        self.binary = binary
        self.timeout = timeout

    def _build_command(self, source: Path, password: str, output: Path) -> list[str]:
        return [
            self.binary,
            "a",
            "-tzip",
            "-mem=AES256",
            f"-p{password}",
            "-y",    # assume yes on all queries
            "-bd",   # no progress indicator
            "-spd",  # no wildcard matching on file names
            "--",    # stop switch parsing; names below are literal
            str(output),
            source.name,
        ]

    async def package_encrypted(self, source_path: PathLike, password: str, output_path: PathLike) -> None:
        source = Path(source_path)
        output = Path(output_path)

        if not source.is_file():
            raise SourceMissing(diagnostics=f"Source file not found: {source}")

        if not password:
            raise PackagingError(diagnostics="Refusing to package without a password")

        logger.info(f"Packaging {source.name} into {output.name}")
        start = datetime.utcnow()

        try:
            returncode, stdout, stderr = await self._run_command(
                self._build_command(source, password, output),
                cwd=source.parent,
            )
        except asyncio.TimeoutError:
            remove_partial_output(output)
            raise PackagingTimeout(
                diagnostics=f"{self.binary} did not finish within {self.timeout:.0f}s for {source.name}"
            )
        except OSError as e:
            # Binary missing or not executable
            remove_partial_output(output)
            raise PackagingError(
                diagnostics=scrub_diagnostics(f"Could not start {self.binary}: {e}", password, source.parent, output.parent)
            )

        duration = (datetime.utcnow() - start).total_seconds()

        if returncode != 0:
            remove_partial_output(output)
            tool_output = stderr or stdout
            raise PackagingError(
                diagnostics=(
                    f"{self.binary} exited with code {returncode}: "
                    f"{scrub_diagnostics(tool_output, password, source.parent, output.parent)}"
                )
            )

        if not output.is_file() or output.stat().st_size == 0:
            remove_partial_output(output)
            raise PackagingError(diagnostics=f"{self.binary} reported success but produced no archive")

        logger.info(f"Packaged {source.name} in {duration:.1f}s ({output.stat().st_size} bytes)")

    async def _run_command(self, cmd: list[str], cwd: Path) -> tuple[int, str, str]:
        """
        Run the archiving tool without a shell and wait for it to exit.

        Returns:
            (return code, stdout, stderr)

        Raises:
            asyncio.TimeoutError: if the process exceeds ``self.timeout``; the
            process is killed before raising.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            # The tool may exit on its own between the timeout and the kill
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        stdout_str = stdout.decode(errors="replace") if stdout else ""
        stderr_str = stderr.decode(errors="replace") if stderr else ""
        return process.returncode, stdout_str, stderr_str
