"""Shell environment scripts and profile hooks."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from cudamgr.core.activation import TARGET_MARKER
from cudamgr.models.system import OsKind
from cudamgr.utils.fs import atomic_write_text
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)

HOOK_START = "# >>> cudamgr >>>"
HOOK_END = "# <<< cudamgr <<<"
BACKUP_SUFFIX = ".cudamgr.bak"

SUPPORTED_SHELLS = ("bash", "zsh", "powershell")


def render_env_sh(root: Path) -> str:
    """POSIX shell script exporting the toolkit behind ``<root>/current``."""
    current = root / "current"
    return f"""# Generated by cudamgr. Sourced from your shell profile.
CUDAMGR_CURRENT="{current}"
if [ -d "$CUDAMGR_CURRENT" ]; then
    export CUDA_HOME="$CUDAMGR_CURRENT"
    export CUDA_PATH="$CUDAMGR_CURRENT"
    case ":$PATH:" in
        *":$CUDAMGR_CURRENT/bin:"*) ;;
        *) export PATH="$CUDAMGR_CURRENT/bin:$PATH" ;;
    esac
    case ":${{LD_LIBRARY_PATH:-}}:" in
        *":$CUDAMGR_CURRENT/lib64:"*) ;;
        *) export LD_LIBRARY_PATH="$CUDAMGR_CURRENT/lib64${{LD_LIBRARY_PATH:+:$LD_LIBRARY_PATH}}" ;;
    esac
fi
"""


def render_env_ps1(root: Path) -> str:
    """PowerShell script reading the target from the activation script."""
    script = root / "current.cmd"
    return f"""# Generated by cudamgr. Dot-sourced from your PowerShell profile.
$cudamgrScript = "{script}"
if (Test-Path $cudamgrScript) {{
    $match = Select-String -Path $cudamgrScript -Pattern '^{TARGET_MARKER}(.+)$' | Select-Object -First 1
    if ($match) {{
        $cudaRoot = $match.Matches[0].Groups[1].Value.Trim()
        $env:CUDA_PATH = $cudaRoot
        $env:CUDA_HOME = $cudaRoot
        if (-not ($env:PATH -split ';' -contains "$cudaRoot\\bin")) {{
            $env:PATH = "$cudaRoot\\bin;$env:PATH"
        }}
    }}
}}
"""


def write_env_scripts(root: Path) -> list[Path]:
    """Write ``env.sh`` and ``env.ps1`` under the root."""
    written = []
    for name, content in (("env.sh", render_env_sh(root)), ("env.ps1", render_env_ps1(root))):
        path = root / name
        atomic_write_text(path, content)
        written.append(path)
    return written


def detect_shell(os_kind: OsKind | None = None) -> str:
    """Guess the user's shell from ``$SHELL`` (PowerShell on Windows)."""
    os_kind = os_kind or OsKind.current()
    if os_kind == OsKind.WINDOWS:
        return "powershell"
    name = Path(os.environ.get("SHELL", "bash")).name
    return name if name in SUPPORTED_SHELLS else "bash"


def profile_path(shell: str, home: Path | None = None) -> Path:
    """Profile file the hook goes into for a shell."""
    home = home or Path.home()
    if shell == "zsh":
        return home / ".zshrc"
    if shell == "powershell":
        return home / "Documents" / "PowerShell" / "Microsoft.PowerShell_profile.ps1"
    if shell == "bash":
        return home / ".bashrc"
    raise ValueError(f"Unsupported shell: {shell}")


def hook_block(shell: str, root: Path) -> str:
    """Marked block that sources the environment script."""
    if shell == "powershell":
        line = f'if (Test-Path "{root / "env.ps1"}") {{ . "{root / "env.ps1"}" }}'
    else:
        line = f'[ -f "{root / "env.sh"}" ] && . "{root / "env.sh"}"'
    return f"{HOOK_START}\n{line}\n{HOOK_END}\n"


def install_hook(profile: Path, block: str) -> bool:
    """Add or refresh the hook block in a profile.

    The first modification of an existing profile keeps a ``.cudamgr.bak``
    copy next to it. Running it again with the same block changes nothing.

    Returns:
        True if the profile was modified
    """
    existing = profile.read_text(encoding="utf-8") if profile.exists() else ""
    updated = _replace_block(existing, block)
    if updated == existing:
        return False

    backup = profile.with_name(profile.name + BACKUP_SUFFIX)
    if profile.exists() and not backup.exists():
        shutil.copy2(profile, backup)
    atomic_write_text(profile, updated)
    logger.info("Updated shell profile %s", profile)
    return True


def remove_hook(profile: Path) -> bool:
    """Remove the hook block from a profile; True if it was present."""
    if not profile.exists():
        return False
    existing = profile.read_text(encoding="utf-8")
    updated = _replace_block(existing, "")
    if updated == existing:
        return False
    atomic_write_text(profile, updated)
    return True


def _replace_block(text: str, block: str) -> str:
    start = text.find(HOOK_START)
    end = text.find(HOOK_END, start) if start != -1 else -1
    if start != -1 and end != -1:
        tail = text[end + len(HOOK_END):]
        if tail.startswith("\n"):
            tail = tail[1:]
        return text[:start] + block + tail
    if not block:
        return text
    separator = "" if not text or text.endswith("\n") else "\n"
    return text + separator + block
