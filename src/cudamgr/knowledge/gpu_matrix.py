"""GPU architecture table for NVIDIA consumer and datacenter cards."""

from typing import Any

_FAMILIES: list[tuple[tuple[str, ...], str, str, str]] = [
    # (model keys, architecture, compute capability, minimum driver)
    (("rtx 50",), "Blackwell", "12.0", "570.00"),
    (("b200", "b100"), "Blackwell", "10.0", "570.00"),
    (("h100", "h200", "gh200"), "Hopper", "9.0", "525.60"),
    (("rtx 4090", "rtx 4080", "rtx 4070", "rtx 4060", "l40", "l4"), "Ada Lovelace", "8.9", "520.00"),
    (("a100", "a30"), "Ampere", "8.0", "450.00"),
    (("rtx 3090", "rtx 3080", "rtx 3070", "rtx 3060", "rtx 3050", "a40", "a10", "a6000"), "Ampere", "8.6", "450.00"),
    (("rtx 2080", "rtx 2070", "rtx 2060", "quadro rtx", "t4"), "Turing", "7.5", "410.00"),
    (("gtx 1660", "gtx 1650", "gtx 1630"), "Turing", "7.5", "418.00"),
    (("v100", "titan v"), "Volta", "7.0", "384.00"),
    (("gtx 1080", "gtx 1070", "gtx 1060", "gtx 1050", "titan xp", "p100"), "Pascal", "6.1", "367.00"),
]


def get_gpu_matrix() -> dict[str, dict[str, Any]]:
    """Get the GPU architecture matrix.

    Returns:
        Dictionary mapping lowercase model keys to their specifications
    """
    matrix: dict[str, dict[str, Any]] = {}
    for keys, architecture, capability, min_driver in _FAMILIES:
        for key in keys:
            matrix[key] = {
                "architecture": architecture,
                "compute_capability": capability,
                "min_driver_version": min_driver,
            }
    return matrix


def lookup_gpu(name: str | None) -> dict[str, Any] | None:
    """Find the architecture entry for a GPU name reported by nvidia-smi.

    The longest matching key wins, so "NVIDIA L40S" maps to the L40 entry
    rather than L4.
    """
    if not name:
        return None
    lowered = name.lower()
    matches = [key for key in get_gpu_matrix() if key in lowered]
    if not matches:
        return None
    best = max(matches, key=len)
    return {"model": best, **get_gpu_matrix()[best]}
