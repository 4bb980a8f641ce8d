"""Connection-string parsing.

Service connection strings look like::

    HostName=my-dps.azure-devices-provisioning.net;SharedAccessKeyName=provisioningserviceowner;SharedAccessKey=<base64>
"""

from __future__ import annotations

from dataclasses import dataclass, field

from iot_provisioning.core.exceptions import ArgumentError

_REQUIRED_KEYS = ("HostName", "SharedAccessKeyName", "SharedAccessKey")


class ConnectionStringError(ArgumentError):
    """The connection string is malformed or missing a required segment."""

    default_code = "INVALID_CONNECTION_STRING"


@dataclass(frozen=True, slots=True)
class ConnectionString:
    """Parsed service connection string.

    Attributes:
        host_name: Service host name.
        shared_access_key_name: Name of the shared access policy.
        shared_access_key: Base64 policy key.
        extra: Any further ``key=value`` segments, verbatim.
    """

    host_name: str
    shared_access_key_name: str
    shared_access_key: str
    extra: dict[str, str] = field(default_factory=dict)


def parse_connection_string(value: str) -> ConnectionString:
    """Parse ``key=value`` segments separated by ``;``.

    Values may themselves contain ``=`` (base64 padding); only the first
    ``=`` of a segment separates key from value.

    Raises:
        ConnectionStringError: If *value* is empty, a segment has no
            ``=``, or a required key is missing.
    """
    if not value or not value.strip():
        raise ConnectionStringError("Connection string must not be empty")

    segments: dict[str, str] = {}
    for raw in value.split(";"):
        segment = raw.strip()
        if not segment:
            continue
        key, sep, val = segment.partition("=")
        if not sep or not key:
            msg = f"Malformed connection string segment: {segment.split('=')[0]!r}"
            raise ConnectionStringError(msg)
        segments[key] = val

    missing = [key for key in _REQUIRED_KEYS if not segments.get(key)]
    if missing:
        msg = f"Connection string is missing required segment(s): {', '.join(missing)}"
        raise ConnectionStringError(msg)

    return ConnectionString(
        host_name=segments.pop("HostName"),
        shared_access_key_name=segments.pop("SharedAccessKeyName"),
        shared_access_key=segments.pop("SharedAccessKey"),
        extra=segments,
    )
