from pathlib import Path


def dot_skillswap() -> Path:
    return Path.home() / ".skillswap"


def package_root() -> Path:
    return Path(__file__).resolve().parent.parent


def annotations_db() -> Path:
    return dot_skillswap() / "annotations.db"


def snapshot_file() -> Path:
    return dot_skillswap() / "snapshot.yaml"


def resolve(path: str | Path | None, default: Path) -> Path:
    """Expand a configured path, relative paths land under .skillswap/."""
    if not path:
        return default
    resolved = Path(path).expanduser()
    if not resolved.is_absolute():
        resolved = dot_skillswap() / resolved
    return resolved
