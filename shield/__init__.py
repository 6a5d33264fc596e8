"""koala-shield: trace IPs to their ASN and block ASNs with AWS WAF."""

__version__ = "1.0.0"
