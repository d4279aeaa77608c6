"""
Delegation to the protobuf compiler.

The compiler is an external program; this module only builds the request
and runs it once, surfacing failures with the program's output attached.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from ..config import StubConfig
from ..errors import ExternalToolError

logger = logging.getLogger(__name__)


@dataclass
class ProtocRequest:
    """One invocation of the protobuf compiler."""

    program: str
    args: list[str] = field(default_factory=list)
    proto_files: list[str] = field(default_factory=list)
    output_dir: str = ""
    module_path: str = ""

    def argv(self) -> list[str]:
        return shlex.split(self.program) + self.args + self.proto_files


def discover_proto_files(schema_dir: str | Path) -> list[str]:
    """Sorted .proto files under ``schema_dir``, relative to it."""
    root = Path(schema_dir)
    if not root.is_dir():
        return []
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*.proto"))


def build_protoc_request(stub_config: StubConfig, schema_dir: str | Path) -> ProtocRequest:
    """
    Build the compiler request for every schema file under ``schema_dir``.

    Args:
        stub_config: Stub configuration (program, output directory, module path)
        schema_dir: Directory holding the generated .proto files

    Returns:
        The request; its ``proto_files`` is empty when nothing was found
    """
    output_dir = stub_config.output_dir
    args = [
        "-I",
        str(schema_dir),
        f"--python_out={output_dir}",
        f"--grpc_python_out={output_dir}",
    ]
    return ProtocRequest(
        program=stub_config.protoc_program,
        args=args,
        proto_files=discover_proto_files(schema_dir),
        output_dir=output_dir,
        module_path=stub_config.protobuf_package,
    )


def run_protoc(request: ProtocRequest) -> subprocess.CompletedProcess | None:
    """
    Run a compiler request once.

    Returns:
        The completed process, or None when there was nothing to compile

    Raises:
        ExternalToolError: If the program cannot be started or exits non-zero
    """
    if not request.proto_files:
        logger.debug("Skipping protoc: no .proto files found")
        return None

    if request.output_dir:
        Path(request.output_dir).mkdir(parents=True, exist_ok=True)

    argv = request.argv()
    logger.debug("Running protoc with args: %s", argv)
    try:
        result = subprocess.run(argv, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ExternalToolError(f"protoc program not found: {request.program}") from e

    if result.returncode != 0:
        output = (result.stdout or "") + (result.stderr or "")
        raise ExternalToolError(
            "protoc failed",
            returncode=result.returncode,
            output=output,
        )

    logger.info("Generated protobuf modules from %d proto file(s)", len(request.proto_files))
    return result
