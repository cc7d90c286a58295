from __future__ import annotations

from pathlib import Path


def test_required_package_paths_exist() -> None:
    root = Path(__file__).resolve().parents[1]
    required = [
        "pyproject.toml",
        "src/archive_search/server.py",
        "src/archive_search/service.py",
        "src/archive_search/tools/__init__.py",
        "src/archive_search/archives/__init__.py",
        "src/archive_search/scan/__init__.py",
        "src/archive_search/security/__init__.py",
        "src/archive_search/logging/__init__.py",
    ]
    for rel in required:
        assert (root / rel).exists(), rel
