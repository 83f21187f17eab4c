from dataclasses import dataclass
from pathlib import Path


@dataclass
class ArniePaths:
    """Centralizes filesystem paths for an Arnie workspace."""

    root: Path

    @property
    def arnie_dir(self) -> Path:
        return self.root / ".arnie"

    @property
    def config_file(self) -> Path:
        return self.arnie_dir / "arnie.json"

    @property
    def logs_dir(self) -> Path:
        return self.arnie_dir / "logs"

    @property
    def global_dir(self) -> Path:
        return Path.home() / ".arnie"

    @property
    def global_config_file(self) -> Path:
        return self.global_dir / "arnie.json"

    @property
    def claude_dir(self) -> Path:
        return self.root / ".claude"

    @property
    def skills_dir(self) -> Path:
        return self.claude_dir / "skills"
