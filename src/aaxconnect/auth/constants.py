"""Fixed device profile presented to the vendor during registration.

The service binds credentials to this profile, so every value here has to
match what the official iOS app sends.
"""

from __future__ import annotations

DEVICE_TYPE = "A2CZJZGLK2JJVM"
APP_NAME = "Audible"
APP_VERSION = "3.56.2"
SOFTWARE_VERSION = "35602678"
OS_VERSION = "15.0.0"
DEVICE_MODEL = "iPhone"
DEVICE_NAME = (
    "%FIRST_NAME%%FIRST_NAME_POSSESSIVE_STRING%%DUPE_STRATEGY_1ST%Audible for iPhone"
)

# Username (audible.*) sign-in only exists on these marketplaces.
USERNAME_LOGIN_DOMAINS = ("de", "com", "co.uk")

ADP_SIGNING_ALGORITHM = "SHA256withRSA:1.0"
