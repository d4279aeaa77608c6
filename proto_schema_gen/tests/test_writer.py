#!/usr/bin/env python3

import pytest

from proto_schema_gen.errors import GenerationError
from proto_schema_gen.ir import GeneratedFile, GeneratedOutput
from proto_schema_gen.writer import AtomicWriter


def leftovers(directory):
    return [p.name for p in directory.iterdir() if p.name.endswith(".tmp")]


class TestAtomicWriter:
    """Atomic writes with content validation"""

    def test_write_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "schema.proto"
        AtomicWriter().write(target, 'syntax = "proto3";\n')
        assert target.read_text() == 'syntax = "proto3";\n'
        assert leftovers(target.parent) == []

    def test_overwrites_existing_file(self, tmp_path):
        target = tmp_path / "schema.proto"
        target.write_text("old")
        AtomicWriter().write(target, "new")
        assert target.read_text() == "new"

    def test_invalid_python_is_rejected(self, tmp_path):
        target = tmp_path / "types.py"
        with pytest.raises(GenerationError, match="Generated Python code is not valid"):
            AtomicWriter().write(target, "def broken(:\n")
        assert not target.exists()
        assert leftovers(tmp_path) == []

    def test_invalid_json_keeps_previous_content(self, tmp_path):
        target = tmp_path / "schema.schema.json"
        target.write_text("{}")
        with pytest.raises(GenerationError, match="Generated JSON is not valid"):
            AtomicWriter().write(target, "{")
        assert target.read_text() == "{}"
        assert leftovers(tmp_path) == []

    def test_validation_can_be_skipped(self, tmp_path):
        target = tmp_path / "draft.py"
        AtomicWriter().write(target, "def broken(:\n", validate=False)
        assert target.read_text() == "def broken(:\n"

    def test_custom_validator(self, tmp_path):
        def no_tabs(content):
            if "\t" in content:
                raise GenerationError("tabs are not allowed")

        writer = AtomicWriter(validators={".proto": no_tabs})
        with pytest.raises(GenerationError, match="tabs"):
            writer.write(tmp_path / "schema.proto", "message A {\n\tstring id = 1;\n}\n")
        writer.write(tmp_path / "other.proto", "message A {\n  string id = 1;\n}\n")
        assert (tmp_path / "other.proto").is_file()

    def test_write_output(self, tmp_path):
        output = GeneratedOutput(multi_file=True)
        output.add(GeneratedFile(path="users.proto", content="message User {}\n"))
        output.add(GeneratedFile(path="docs/users.md", content="# Users\n"))

        written = AtomicWriter().write_output(output, tmp_path)
        assert written == [tmp_path / "users.proto", tmp_path / "docs" / "users.md"]
        assert (tmp_path / "docs" / "users.md").read_text() == "# Users\n"

    def test_write_file_list(self, tmp_path):
        files = [GeneratedFile(path="adapter/__init__.py", content="")]
        assert AtomicWriter().write_output(files, str(tmp_path)) == [tmp_path / "adapter" / "__init__.py"]


if __name__ == "__main__":
    pytest.main([__file__])
