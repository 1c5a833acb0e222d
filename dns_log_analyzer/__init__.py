"""
DNS Log Analyzer - turns RouterOS and NextDNS query logs into one JSON analysis.

Parses both log flavours, tags queries against a regex blocklist and crunches
device, domain and hourly views for the dashboard.
"""

__version__ = "0.2.0"
