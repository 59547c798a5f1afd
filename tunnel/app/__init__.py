"""
tun-proxy gateway application.

Packages:
    - auth:  Bearer credential check
    - proxy: /proxy endpoint and the header/redirect translation protocol
"""

__version__ = "1.0.0"
