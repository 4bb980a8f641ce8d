"""Device-side registration.

- X509Registration: register with an X.509 client certificate
- SymmetricKeyRegistration: register with a symmetric key SAS
- PollingStateMachine: drives one registration attempt to completion
- X509SecurityClient / SymmetricKeySecurityClient: device credentials
"""

from iot_provisioning.device.polling import PollingState, PollingStateMachine
from iot_provisioning.device.registration import RegistrationClient
from iot_provisioning.device.security import SymmetricKeySecurityClient, X509SecurityClient
from iot_provisioning.device.symmetric_key_registration import SymmetricKeyRegistration
from iot_provisioning.device.x509_registration import X509Registration
from iot_provisioning.utils.sas import derive_device_key

__all__ = [
    "PollingState",
    "PollingStateMachine",
    "RegistrationClient",
    "SymmetricKeyRegistration",
    "SymmetricKeySecurityClient",
    "X509Registration",
    "X509SecurityClient",
    "derive_device_key",
]
