"""
Tests for password hashing and the layering around it.
"""
import ast
from pathlib import Path

import pytest

from backend.core.security import get_password_hash, verify_password

pytestmark = pytest.mark.asyncio

BACKEND = Path(__file__).resolve().parents[2] / "backend"


def imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text())
    modules = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            modules.add(node.module)
        elif isinstance(node, ast.Import):
            modules.update(alias.name for alias in node.names)
    return modules


class TestPasswordHashing:
    async def test_hash_verifies(self):
        hashed = get_password_hash("Str0ng!Pass")

        assert hashed != "Str0ng!Pass"
        assert verify_password("Str0ng!Pass", hashed)
        assert not verify_password("wrong", hashed)


class TestLayering:
    @pytest.mark.parametrize("package", ["services", "tasks", "core"])
    async def test_lower_layers_do_not_import_api(self, package):
        offenders = {
            path.name: sorted(m for m in imported_modules(path) if m.startswith("backend.api"))
            for path in (BACKEND / package).glob("*.py")
        }

        assert {name: mods for name, mods in offenders.items() if mods} == {}
