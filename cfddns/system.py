import platform
import socket
from typing import NamedTuple


class PlatformInfo(NamedTuple):
    os: str
    arch: str
    family: str

    @classmethod
    def current(cls) -> "PlatformInfo":
        system = platform.system().lower() or "unknown"
        family = "windows" if system == "windows" else "unix"
        return cls(os=system, arch=platform.machine().lower() or "unknown", family=family)

    def display(self) -> str:
        return f"{self.os}-{self.arch}"


def get_host_identifier() -> str:
    """Host name of this machine, used to tell updaters apart in logs"""
    try:
        hostname = socket.gethostname().strip()
    except OSError:
        hostname = ""
    return hostname or "unknown-host"
