"""User-agent string construction.

Every request carries ``<package>/<version> (<platform>)`` so the service
can attribute traffic to SDK releases and runtimes, e.g.::

    iot-provisioning-device/0.1.0 (python 3.12.4; Linux 6.8.0; x86_64)
"""

from __future__ import annotations

import platform
from collections.abc import Callable

from iot_provisioning import __version__
from iot_provisioning.core.constants import DEVICE_PACKAGE_NAME


def get_platform_string() -> str:
    """Return ``"python <version>; <os> <release>; <arch>"``."""
    return (
        f"python {platform.python_version()}; "
        f"{platform.system()} {platform.release()}; "
        f"{platform.machine()}"
    )


def get_user_agent_string(
    callback: Callable[[str], None] | None = None,
    *,
    package_name: str = DEVICE_PACKAGE_NAME,
) -> str | None:
    """Build the user-agent string for *package_name*.

    Args:
        callback: When given, receives the string and ``None`` is returned.
        package_name: Package identity placed before the version.
    """
    agent = f"{package_name}/{__version__} ({get_platform_string()})"
    if callback is not None:
        callback(agent)
        return None
    return agent
