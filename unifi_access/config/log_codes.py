"""
Log codes for configuration-related operations.
"""

CONFIG = "config"

# TLS Configuration
TLS = f"{CONFIG}.tls"
TLS_RESOLVED = f"{TLS}.resolved"
TLS_RESOLUTION_FALLBACK_DEFAULT = f"{TLS}.resolution_fallback_default"
TLS_CA_BUNDLE_RESOLVED = f"{TLS}.ca_bundle_resolved"
TLS_DEVICE_CERT_RESOLVED = f"{TLS}.device_cert_resolved"
TLS_VERIFICATION_DISABLED = f"{TLS}.verification_disabled"

# Client settings
SETTINGS = f"{CONFIG}.settings"
SETTINGS_RESOLVED = f"{SETTINGS}.resolved"
