from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import iter_source_files, matches_prefix, package_root, parse_imports

# Lower layers never import upward.
_UPPER = ("nightly.git", "nightly.services", "nightly.output", "nightly.cli")
_FORBIDDEN = {
    "core": ("nightly.platform", *_UPPER),
    "platform": _UPPER,
    "git": _UPPER[1:],
    "services": ("nightly.cli",),
    "output": ("nightly.cli",),
}


def test_layers_only_import_downward() -> None:
    require_arch_checks_enabled()

    root = package_root()
    offenders: list[str] = []
    for file_path in iter_source_files():
        rel = file_path.relative_to(root)
        forbidden = _FORBIDDEN.get(rel.parts[0], ())
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                offenders.append(f"{rel.as_posix()}:{item.line}: imports {item.module}")

    assert not offenders, "Layering violations:\n" + "\n".join(offenders)
