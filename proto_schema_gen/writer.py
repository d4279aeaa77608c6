"""
Writing of generated artifacts.

Every artifact is staged next to its target and only moved into place once
its content has been checked, so a failed run never leaves a truncated
schema or stub module behind.
"""

from __future__ import annotations

import ast
import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

from .errors import GenerationError
from .ir import GeneratedFile, GeneratedOutput

logger = logging.getLogger(__name__)

Validator = Callable[[str], None]


def _validate_python(content: str) -> None:
    try:
        ast.parse(content)
    except SyntaxError as e:
        raise GenerationError(f"Generated Python code is not valid: {e}") from e


def _validate_json(content: str) -> None:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Generated JSON is not valid: {e}") from e


DEFAULT_VALIDATORS: dict[str, Validator] = {
    ".py": _validate_python,
    ".json": _validate_json,
}


class AtomicWriter:
    """Stage, check and move generated files into place.

    Content is checked by the validator registered for the target's suffix;
    ``.py`` and ``.json`` are checked by default. Earlier files of a batch
    stay on disk when a later one is rejected.
    """

    def __init__(self, validators: dict[str, Validator] | None = None):
        """
        Args:
            validators: Extra validators keyed by file suffix (``".proto"``),
                overriding the defaults for the same suffix
        """
        self._validators = {**DEFAULT_VALIDATORS, **(validators or {})}

    def write(self, path: Path, content: str, validate: bool = True) -> None:
        """Write one artifact.

        Args:
            path: Destination; missing parent directories are created
            content: Full file content
            validate: Run the suffix validator before the file is moved into place

        Raises:
            GenerationError: If the content is rejected; the destination is left untouched
            OSError: If the file system refuses the write
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, staged_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", text=True)
        staged = Path(staged_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as staged_file:
                staged_file.write(content)
            if validate:
                self._check(path, content)
            staged.replace(path)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise

    def write_output(self, output: GeneratedOutput | list[GeneratedFile], base_dir: str | Path) -> list[Path]:
        """Write a generation result below ``base_dir``.

        Returns:
            Destination paths in output order
        """
        files = output.files if isinstance(output, GeneratedOutput) else output
        written: list[Path] = []
        for generated in files:
            destination = Path(base_dir) / generated.path
            self.write(destination, generated.content)
            logger.debug("Wrote %s", destination)
            written.append(destination)
        return written

    def _check(self, path: Path, content: str) -> None:
        check = self._validators.get(path.suffix)
        if check is not None:
            check(content)
