"""NVIDIA driver to CUDA toolkit compatibility."""

from cudamgr.models.version import VersionId

# Minimum driver branch and the newest CUDA release it supports, newest first.
_DRIVER_CUDA_TABLE: list[tuple[str, str]] = [
    ("570", "12.8"),
    ("560", "12.6"),
    ("550", "12.4"),
    ("545", "12.3"),
    ("535", "12.2"),
    ("530", "12.1"),
    ("525", "12.0"),
    ("520", "11.8"),
    ("515", "11.7"),
    ("470", "11.4"),
    ("460", "11.2"),
    ("450", "11.0"),
]

# Drivers newer than the top of the table support at least this release.
NEWEST_KNOWN_BRANCH = 570


def get_driver_matrix() -> list[tuple[VersionId, VersionId]]:
    """Get the driver compatibility table.

    Returns:
        List of (minimum driver, max CUDA version) pairs, newest first
    """
    return [(VersionId.parse(driver), VersionId.parse(cuda)) for driver, cuda in _DRIVER_CUDA_TABLE]


def max_cuda_for_driver(driver: VersionId | str) -> str | None:
    """Estimate the newest CUDA version a driver can run.

    Args:
        driver: Installed driver version (e.g. ``550.54.14``)

    Returns:
        CUDA version string, ``"12.8+"`` for drivers newer than the table,
        or None for drivers older than any known release
    """
    driver = VersionId.parse(driver)
    if driver.major > NEWEST_KNOWN_BRANCH:
        return f"{_DRIVER_CUDA_TABLE[0][1]}+"
    for min_driver, cuda in get_driver_matrix():
        if driver >= min_driver:
            return str(cuda)
    return None
