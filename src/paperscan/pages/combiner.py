"""Merge page files into a single PDF.

External tools are unreliable: a missing binary, a non-zero exit or a hung
process all count as failure, and the next strategy in the chain is tried.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol, Sequence

import fitz  # PyMuPDF

from paperscan.config import SettingsStore
from paperscan.errors import MergeToolError, NoPagesError, NotFoundError, PaperscanError, ToolExecutionError
from paperscan.utils.files import combined_filename, is_plain_filename

LOGGER = logging.getLogger(__name__)


class MergeStrategy(Protocol):
    name: str

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        """Concatenate ``inputs`` in order into ``output`` or raise MergeToolError."""


class CommandMerge(ABC):
    """Run a command-line PDF tool as a subprocess."""

    name = "command"
    executable = ""

    def __init__(self, *, timeout: float | None = None) -> None:
        self.timeout = timeout

    @abstractmethod
    def build_command(self, inputs: Sequence[Path], output: Path) -> list[str]:
        """Return the argument list that writes `inputs` into `output`."""

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        command = self.build_command(inputs, output)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise MergeToolError(self.name, f"{self.executable} not available") from exc
        except subprocess.TimeoutExpired as exc:
            raise MergeToolError(self.name, f"timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise MergeToolError(self.name, str(exc)) from exc

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()
            message = f"exited with status {completed.returncode}"
            raise MergeToolError(self.name, f"{message}: {detail}" if detail else message)


class PdftkMerge(CommandMerge):
    name = "pdftk"
    executable = "pdftk"

    def build_command(self, inputs: Sequence[Path], output: Path) -> list[str]:
        return [self.executable, *(str(path) for path in inputs), "cat", "output", str(output)]


class GhostscriptMerge(CommandMerge):
    name = "ghostscript"
    executable = "gs"

    def build_command(self, inputs: Sequence[Path], output: Path) -> list[str]:
        return [
            self.executable,
            "-dNOPAUSE",
            "-sDEVICE=pdfwrite",
            f"-sOUTPUTFILE={output}",
            "-dBATCH",
            *(str(path) for path in inputs),
        ]


class PyMuPDFMerge:
    """In-process merge with PyMuPDF, for hosts without either tool."""

    name = "pymupdf"

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        try:
            merged = fitz.open()
            try:
                for path in inputs:
                    with fitz.open(str(path)) as source:
                        merged.insert_pdf(source)
                merged.save(str(output))
            finally:
                merged.close()
        except Exception as exc:
            raise MergeToolError(self.name, str(exc)) from exc


MERGE_STRATEGIES: dict[str, type] = {
    "pdftk": PdftkMerge,
    "ghostscript": GhostscriptMerge,
    "pymupdf": PyMuPDFMerge,
}


def strategies_from_names(names: Sequence[str], *, timeout: float | None = None) -> list[MergeStrategy]:
    """Instantiate merge strategies in the given order."""
    strategies = []
    for name in names:
        try:
            factory = MERGE_STRATEGIES[name]
        except KeyError:
            raise PaperscanError(f"Unknown merge tool: {name}") from None
        if issubclass(factory, CommandMerge):
            strategies.append(factory(timeout=timeout))
        else:
            strategies.append(factory())
    return strategies


class PageCombiner:
    """Combine ordered page files from the output directory into one document."""

    def __init__(
        self,
        settings: SettingsStore,
        *,
        strategies: Sequence[MergeStrategy] | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self._strategies = list(strategies) if strategies is not None else None
        self._clock = clock
        self.log = logger or LOGGER

    def strategies(self) -> list[MergeStrategy]:
        if self._strategies is not None:
            return self._strategies
        current = self.settings.get()
        return strategies_from_names(current.merge_tools, timeout=current.merge_timeout)

    def combine(self, page_filenames: Sequence[str], output_filename: str | None = None) -> Path:
        """Merge pages in the given order and return the combined file path."""
        if not page_filenames:
            raise NoPagesError()

        scan_dir = self.settings.get().output_dir
        input_paths = []
        for filename in page_filenames:
            path = scan_dir / filename
            if not is_plain_filename(filename) or not path.is_file():
                raise NotFoundError(filename)
            input_paths.append(path)

        if output_filename is None:
            moment = self._clock() if self._clock is not None else None
            output_filename = combined_filename(moment)
        elif not is_plain_filename(output_filename):
            raise PaperscanError(f"Invalid output filename: {output_filename!r}")
        output_path = scan_dir / output_filename
        if output_path.exists():
            raise PaperscanError(f"Output file {output_filename} already exists")

        self.log.info("Combining %d pages into %s...", len(input_paths), output_filename)

        failures: list[str] = []
        strategies = self.strategies()
        for index, strategy in enumerate(strategies):
            if index:
                self.log.info("Trying %s after %s failed", strategy.name, strategies[index - 1].name)
            try:
                strategy.merge(input_paths, output_path)
            except MergeToolError as exc:
                self.log.warning("Merge with %s failed: %s", exc.tool, exc.message)
                failures.append(str(exc))
                output_path.unlink(missing_ok=True)
                continue

            if not output_path.exists():
                self.log.error("%s reported success but %s is missing", strategy.name, output_filename)
                raise ToolExecutionError(["Combined PDF was not created"])
            self.log.info("Successfully combined pages using %s", strategy.name)
            return output_path

        error = ToolExecutionError(failures or ["no merge tools configured"])
        self.log.error("%s", error)
        raise error
