"""
Platform specifier parsing and matching.

Specifiers look like "os", "arch", "os/arch" or "os/arch/variant". Known
aliases are normalized so that "linux/aarch64" and "linux/arm64/v8" describe
the same platform.
"""

import platform as _host
import re
from collections.abc import Iterable

from layer_crypt.exceptions import PlatformParseError
from layer_crypt.models.image import Platform

_SPECIFIER_COMPONENT = re.compile(r"^[A-Za-z0-9_-]+$")

_KNOWN_OS = frozenset(
    {
        "aix",
        "android",
        "darwin",
        "dragonfly",
        "freebsd",
        "hurd",
        "illumos",
        "ios",
        "js",
        "linux",
        "nacl",
        "netbsd",
        "openbsd",
        "plan9",
        "solaris",
        "windows",
        "zos",
    }
)

_KNOWN_ARCH = frozenset(
    {
        "386",
        "amd64",
        "amd64p32",
        "arm",
        "armbe",
        "arm64",
        "arm64be",
        "loong64",
        "mips",
        "mipsle",
        "mips64",
        "mips64le",
        "mips64p32",
        "mips64p32le",
        "ppc",
        "ppc64",
        "ppc64le",
        "riscv",
        "riscv64",
        "s390",
        "s390x",
        "sparc",
        "sparc64",
        "wasm",
    }
)


def normalize_os(os_name: str) -> str:
    """Lowercase an OS name and resolve aliases. Empty means the host OS."""
    if not os_name:
        return _host_os()
    os_name = os_name.lower()
    if os_name == "macos":
        return "darwin"
    return os_name


def normalize_arch(arch: str, variant: str) -> tuple[str, str]:
    """Resolve architecture aliases and their implied variants."""
    arch, variant = arch.lower(), variant.lower()
    match arch:
        case "i386":
            return "386", ""
        case "x86_64" | "x86-64" | "amd64":
            return "amd64", "" if variant == "v1" else variant
        case "aarch64" | "arm64":
            return "arm64", "" if variant in ("8", "v8", "v8.0") else variant
        case "armhf":
            return "arm", "v7"
        case "armel":
            return "arm", "v6"
        case "arm":
            if variant in ("", "7"):
                return "arm", "v7"
            if variant in ("5", "6", "8"):
                return "arm", f"v{variant}"
            return "arm", variant
        case _:
            return arch, variant


def normalize(spec: Platform) -> Platform:
    """Return the normalized form of a platform, keeping OS version and features."""
    arch, variant = normalize_arch(spec.architecture, spec.variant)
    return Platform(
        os=normalize_os(spec.os),
        architecture=arch,
        variant=variant,
        os_version=spec.os_version,
        os_features=spec.os_features,
    )


def parse(specifier: str) -> Platform:
    """
    Parse a platform specifier.

    Args:
        specifier: "os", "arch", "os/arch" or "os/arch/variant".

    Returns:
        The parsed Platform.

    Raises:
        PlatformParseError: If the specifier is malformed or names an unknown
            operating system or architecture.
    """
    if "*" in specifier:
        msg = "wildcards are not supported in platform specifiers"
        raise PlatformParseError(msg, specifier=specifier)

    parts = specifier.split("/")
    for part in parts:
        if not _SPECIFIER_COMPONENT.match(part):
            msg = f"{part!r} is an invalid platform specifier component"
            raise PlatformParseError(msg, specifier=specifier)

    match parts:
        case [single]:
            return _parse_single(single, specifier)
        case [os_name, arch]:
            return _with_arm64_default(normalize_os(os_name), *normalize_arch(arch, ""))
        case [os_name, arch, variant]:
            return _with_arm64_default(normalize_os(os_name), *normalize_arch(arch, variant))
        case _:
            msg = "cannot parse platform specifier"
            raise PlatformParseError(msg, specifier=specifier)


def parse_all(specifiers: Iterable[str]) -> list[Platform]:
    """Parse each specifier, failing on the first malformed one."""
    return [parse(specifier) for specifier in specifiers]


def matches(spec: Platform, candidate: Platform) -> bool:
    """Check whether two platforms are the same once normalized."""
    left, right = normalize(spec), normalize(candidate)
    return (
        left.os == right.os
        and left.architecture == right.architecture
        and left.variant == right.variant
    )


def default_spec() -> Platform:
    """Get the platform of the running host."""
    arch, variant = _host_arch()
    return Platform(os=_host_os(), architecture=arch, variant=variant)


def _parse_single(part: str, specifier: str) -> Platform:
    os_name = normalize_os(part)
    if os_name in _KNOWN_OS:
        arch, variant = _host_arch()
        return Platform(os=os_name, architecture=arch, variant=variant)

    arch, variant = normalize_arch(part, "")
    if arch in _KNOWN_ARCH:
        return _with_arm64_default(_host_os(), arch, variant)

    msg = "unknown operating system or architecture"
    raise PlatformParseError(msg, specifier=specifier)


def _with_arm64_default(os_name: str, arch: str, variant: str) -> Platform:
    if arch == "arm64" and not variant:
        variant = "v8"
    return Platform(os=os_name, architecture=arch, variant=variant)


def _host_os() -> str:
    name = _host.system().lower()
    return "darwin" if name == "macos" else name or "linux"


def _host_arch() -> tuple[str, str]:
    machine = _host.machine().lower()
    if machine.startswith("armv") and machine[4:5].isdigit():
        return "arm", f"v{machine[4]}"
    return normalize_arch(machine, "")
