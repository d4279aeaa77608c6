import dataclasses
import logging
from pathlib import Path

import click

from .cli_utils import reconstruct_command_line
from .config import GenerationStrategy, OutputFormat, ProtoConfig
from .errors import ProtoSchemaGenError, ValidationError
from .loader import load_config, load_context
from .planner import MultiFilePlanner
from .stubs import StubSynthesizer, build_protoc_request, run_protoc
from .writer import AtomicWriter


def _fail(error: ProtoSchemaGenError) -> click.ClickException:
    message = str(error)
    if isinstance(error, ValidationError):
        message = "\n".join([message] + [str(finding) for finding in error.findings])
    return click.ClickException(message)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def proto_schema_gen(verbose):
    """Generate protobuf schemas and adapters from an annotated structural model."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@proto_schema_gen.command()
@click.option("--config", "-c", default=None, type=click.Path(exists=True, resolve_path=True))
@click.option(
    "--strategy",
    "-s",
    default=None,
    type=click.Choice([s.value for s in GenerationStrategy]),
    help="Override the configured generation strategy",
)
@click.option("--format", "-f", "formats", multiple=True, help="Additional output format (repeatable)")
@click.option("--stubs", is_flag=True, default=False, help="Also generate adapter stubs")
@click.option("--run-protoc", is_flag=True, default=False, help="Run protoc on the generated schemas")
@click.argument("path", type=click.Path(exists=True, resolve_path=True))
@click.argument("output", default=None, required=False, type=click.Path(resolve_path=True))
def generate(config, strategy, formats, stubs, run_protoc, path, output):
    """Generate .proto files (and extra formats) from the IR document at PATH into OUTPUT."""
    try:
        proto_config = load_config(config) if config is not None else ProtoConfig()
        if strategy is not None:
            proto_config.generation_strategy = GenerationStrategy(strategy)
        if formats:
            requested = [OutputFormat.parse(f) for f in formats]
            proto_config.output_formats = [OutputFormat.PROTO] + [f for f in requested if f != OutputFormat.PROTO]
        if stubs:
            proto_config.generate_stubs.enabled = True

        ctx = load_context(path)
        base_dir = Path(output or proto_config.output or ".")
        writer = AtomicWriter()

        generated = MultiFilePlanner(ctx, proto_config).generate()
        for written in writer.write_output(generated, base_dir):
            click.echo(f"Wrote {written}")

        if proto_config.generate_stubs.enabled:
            stub_files = StubSynthesizer(ctx, proto_config, reconstruct_command_line(generate)).generate()
            for written in writer.write_output(stub_files, base_dir):
                click.echo(f"Wrote {written}")

        if run_protoc:
            _run_protoc(proto_config, base_dir, base_dir)
    except ProtoSchemaGenError as e:
        raise _fail(e) from e


@proto_schema_gen.command()
@click.option("--config", "-c", default=None, type=click.Path(exists=True, resolve_path=True))
@click.option("--output", "-o", default=None, type=click.Path(resolve_path=True), help="Base directory for outputs")
@click.argument("schema_dir", type=click.Path(exists=True, file_okay=False, resolve_path=True))
def protoc(config, output, schema_dir):
    """Run the protobuf compiler on the .proto files under SCHEMA_DIR."""
    try:
        proto_config = load_config(config) if config is not None else ProtoConfig()
        _run_protoc(proto_config, Path(schema_dir), Path(output or proto_config.output or "."))
    except ProtoSchemaGenError as e:
        raise _fail(e) from e


def _run_protoc(proto_config: ProtoConfig, schema_dir: Path, base_dir: Path) -> None:
    stub_config = dataclasses.replace(
        proto_config.generate_stubs,
        output_dir=str(base_dir / proto_config.generate_stubs.output_dir),
    )
    request = build_protoc_request(stub_config, schema_dir)
    if not request.proto_files:
        click.echo(f"No .proto files found in {schema_dir}")
        return
    run_protoc(request)
    click.echo(f"Compiled {len(request.proto_files)} proto file(s) into {request.output_dir}")

