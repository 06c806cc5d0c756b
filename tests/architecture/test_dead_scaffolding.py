"""
Dead scaffolding checks.

Every public helper the database layer exports must have a caller
somewhere in the project or its tests.  A re-export from
``yield_kernel/db/__init__.py`` does not count as a caller.
"""

import ast
import re
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]

ENGINE_MODULE = REPO_ROOT / "yield_kernel" / "db" / "engine.py"

_NOT_CALLERS = {
    ENGINE_MODULE,
    REPO_ROOT / "yield_kernel" / "db" / "__init__.py",
}


def _public_functions(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(), filename=str(path))
    return [
        node.name
        for node in tree.body
        if isinstance(node, ast.FunctionDef) and not node.name.startswith("_")
    ]


def _caller_sources() -> str:
    sources = []
    for package in ("yield_kernel", "yield_services", "yield_config", "tests"):
        for path in sorted((REPO_ROOT / package).rglob("*.py")):
            if path not in _NOT_CALLERS:
                sources.append(path.read_text())
    return "\n".join(sources)


class TestEngineHelpersUsed:
    def test_every_public_engine_function_has_a_caller(self):
        source = _caller_sources()
        unused = [
            name
            for name in _public_functions(ENGINE_MODULE)
            if not re.search(rf"\b{name}\b", source)
        ]
        assert unused == [], (
            f"Public functions in yield_kernel/db/engine.py with no caller: {unused}. "
            "Either use them or remove them."
        )

    def test_db_exports_are_defined(self):
        import yield_kernel.db as db

        assert all(hasattr(db, name) for name in db.__all__)
