"""Device Provisioning SDK.

Device-side clients register a device identity with the provisioning
service using X.509 or symmetric-key authentication; the service-side
client manages enrollment records through the REST API.
"""

__version__ = "0.1.0"
