"""
CLI utilities for command line reconstruction.
"""

from pathlib import Path

import click

PROGRAM = "proto_schema_gen"


def reconstruct_command_line(click_command: click.Command) -> str:
    """
    Rebuild the invoking command line from the current Click context.

    Used in the header of generated stub modules so a reader can tell how
    they were produced. Paths are shortened to their file names and options
    left at their default value are omitted.

    Args:
        click_command: Click command object for introspection

    Returns:
        Reconstructed command line string
    """
    try:
        ctx = click.get_current_context()
    except RuntimeError:
        return PROGRAM

    cmd_parts = [PROGRAM, click_command.name or ""]
    cli_args = ctx.params
    if not cli_args:
        return " ".join(part for part in cmd_parts if part)

    arguments = []
    options = []
    for param in click_command.params:
        if param.name not in cli_args:
            continue
        value = cli_args[param.name]
        if not value:
            continue

        if isinstance(param, click.Option):
            if value == param.default:
                continue
            flag = param.opts[0] if param.opts else f"--{param.name}"
            if param.is_flag:
                options.append(flag)
                continue
            values = value if isinstance(value, (list, tuple)) else [value]
            for item in values:
                options.extend([flag, _format_value(item)])
        elif isinstance(param, click.Argument):
            arguments.append(_format_value(value))

    cmd_parts.extend(arguments)
    cmd_parts.extend(options)
    return " ".join(part for part in cmd_parts if part)


def _format_value(value) -> str:
    # Existing paths are shown by file name only
    if isinstance(value, (str, Path)):
        path_obj = Path(str(value))
        return path_obj.name if path_obj.exists() else str(value)
    return str(value)
