"""
Stub/adapter synthesis.

Renders the Python modules that sit between the domain types and the
protoc-generated code: conversions, the gRPC servicer adapters, typed
clients, batch/stream bridges and registration helpers.
"""

from __future__ import annotations

import logging
import posixpath

from ..config import ProtoConfig
from ..errors import GenerationError
from ..ir import GeneratedFile, GenerationContext
from .analysis import StubAnalyzer, TemplateData
from .template_manager import TemplateManager

logger = logging.getLogger(__name__)

PACKAGE_INIT = '"""Conversions and gRPC adapters between domain types and protobuf messages."""\n'


def is_effectively_empty(content: str) -> bool:
    """True when a module holds nothing but comments, imports and blank lines."""
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith(("import ", "from ")):
            continue
        return False
    return True


class StubSynthesizer:
    """Generate the adapter stub modules for a whole IR.

    Args:
        ctx: Generation context (the whole IR, not a multi-file group)
        config: Generator configuration; stub options live in ``config.generate_stubs``
        command_line: Command line recorded in the generated headers
    """

    def __init__(self, ctx: GenerationContext, config: ProtoConfig, command_line: str = ""):
        self.ctx = ctx
        self.config = config
        self.stub_config = config.generate_stubs
        self.command_line = command_line
        self.templates = TemplateManager(self.stub_config.templates)

    def artifacts(self) -> list[tuple[str, str]]:
        """(file name, template name) pairs to render, in output order."""
        templates = self.stub_config.templates
        artifacts = [
            ("types.py", templates.types_template),
            ("adapter.py", templates.adapter_template),
            ("client.py", templates.client_template),
            ("bridge.py", templates.bridge_template),
        ]
        if self.stub_config.registration_helpers:
            artifacts.append(("registration.py", templates.registration_template))
        return artifacts

    def template_data(self) -> TemplateData:
        return StubAnalyzer(self.ctx, self.config, self.command_line).analyze()

    def generate(self) -> list[GeneratedFile]:
        """
        Render every stub module.

        Returns:
            The generated files; modules with no content beyond the header and
            imports are skipped

        Raises:
            GenerationError: If a template is missing or fails, or a required
                module path is not configured
        """
        data = self.template_data()
        self._check_module_paths(data)
        context = data.to_dict()

        files: list[GeneratedFile] = []
        for file_name, template_name in self.artifacts():
            content = self.templates.render(template_name, context)
            if is_effectively_empty(content):
                logger.debug("Skipping %s: nothing to generate", file_name)
                continue
            files.append(self._file(file_name, content, template_name))

        if files:
            files.insert(0, self._file("__init__.py", PACKAGE_INIT, ""))
        logger.info("Generated %d stub file(s) in %s", len(files), self.stub_config.output_dir)
        return files

    def _file(self, file_name: str, content: str, template_name: str) -> GeneratedFile:
        return GeneratedFile(
            path=posixpath.join(self.stub_config.output_dir, file_name),
            content=content,
            metadata={"artifact": "stub", "template": template_name},
        )

    def _check_module_paths(self, data: TemplateData) -> None:
        if data.types or data.enums:
            if not data.module_path:
                raise GenerationError("generate_stubs.module_path is required to generate conversions")
            if not data.protobuf_package:
                raise GenerationError("generate_stubs.protobuf_package is required to generate conversions")
        if data.services and not data.grpc_package:
            raise GenerationError("generate_stubs.grpc_package is required to generate service adapters")
