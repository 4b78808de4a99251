"""
Packaging metadata checks.
"""

from pathlib import Path

PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def project_table():
    lines = PYPROJECT.read_text(encoding="utf-8").splitlines()
    start = lines.index("[project]")
    table = []
    for line in lines[start + 1:]:
        if line.startswith("["):
            break
        table.append(line)
    return table


def test_project_metadata_has_no_requirements_document_as_readme():
    keys = [line.split("=", 1)[0].strip() for line in project_table() if "=" in line]
    assert "name" in keys
    assert "readme" not in keys
    assert not any("spec.md" in line for line in project_table())


def test_runtime_dependencies_declared():
    text = PYPROJECT.read_text(encoding="utf-8")
    for dist in ("fastapi", "pydantic-settings", "sqlalchemy[asyncio]", "asyncpg", "redis", "numpy", "scikit-learn"):
        assert f'"{dist}' in text
