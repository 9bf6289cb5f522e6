"""Server directory layout for each supported architecture."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

from mta_supervisor.core.exceptions import ExecutableNotFoundError, UnsupportedArchitectureError

# machine -> (directory suffix, executable name)
ARCHITECTURES: Dict[str, Tuple[str, str]] = {
    "x86_64": ("_x64", "mta-server64"),
    "aarch64": ("_arm64", "mta-server-arm64"),
}

STATE_SUBPATH = Path("mods") / "deathmatch"
STATE_FILES = ("internal.db", "registry.db")
STATE_DIRECTORY = "databases"


@dataclass(frozen=True)
class ServerLayout:
    """Paths of a server installation under the working area."""

    base_dir: Path
    arch_suffix: str
    executable_name: str

    @classmethod
    def for_machine(cls, machine: str, base_dir: Path) -> "ServerLayout":
        """Resolve the layout for ``machine`` (as reported by ``uname -m``).

        Raises:
            UnsupportedArchitectureError: If no server build exists for it
        """
        try:
            suffix, executable = ARCHITECTURES[machine]
        except KeyError:
            raise UnsupportedArchitectureError(
                f"Unsupported architecture: {machine}", code="unsupported_arch"
            ) from None
        return cls(base_dir=Path(base_dir), arch_suffix=suffix, executable_name=executable)

    @property
    def server_dir(self) -> Path:
        return self.base_dir / f"multitheftauto_linux{self.arch_suffix}"

    @property
    def executable(self) -> Path:
        return self.server_dir / self.executable_name

    @property
    def state_dir(self) -> Path:
        """Directory the server keeps its databases in."""
        return self.server_dir / STATE_SUBPATH

    def ensure_executable(self) -> Path:
        """Check the server executable exists and return its path."""
        if not self.executable.is_file():
            raise ExecutableNotFoundError(
                f"Executable not found: {self.executable}", code="missing_executable"
            )
        return self.executable
