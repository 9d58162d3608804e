from __future__ import annotations

import shutil
from pathlib import Path


class BuildError(Exception):
    """Raised for conditions that stop the whole build."""


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise BuildError("Refusing to clean project root.")
    if not output_resolved.is_relative_to(root_resolved):
        raise BuildError("Refusing to clean output directory outside project root.")
    shutil.rmtree(output_dir)
