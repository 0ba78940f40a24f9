import textwrap

import pytest


@pytest.fixture()
def make_project(tmp_path):
    """Write a throwaway project: ``make_project({"app/page.tsx": "..."})``."""

    def write(files: dict[str, str]):
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"))
        return root

    return write
