"""Shared sample logs for the test suite."""

from pathlib import Path

import pytest


ROUTEROS_LOG = """\
2024-03-01 10:15:02 dns query from 192.168.88.20: #41 www.example.com. A
Mar  1 10:20:00 gw dns: query from 192.168.88.21: #42 ads.tracker.net. AAAA
mar/01/2024 11:05:10 dns query from 192.168.88.20: #43 44.8.0.10.in-addr.arpa. PTR
2024-03-01 11:30:00 192.168.88.22 api.example.com A
2024-03-01 11:31:00 system,info router rebooted

2024-03-01 11:32:00 dhcp,info defconf assigned 192.168.88.30
"""

NEXTDNS_CSV = """\
timestamp,domain,query_type,reasons,client_ip,status
2024-03-01T10:15:02Z,ads.doubleclick.net,A,"note, with comma",203.0.113.5,Blocked
2024-03-01T10:16:00Z,www.example.com,AAAA,,203.0.113.5,default
2024-03-01T10:17:00Z,cdn.example.com,A,,203.0.113.6,BLOCKED
2024-03-01T10:18:00Z,tracker.example.org,A,"a, b, c",203.0.113.6,blocked
not-a-time,www.example.com,A,,203.0.113.6,default
2024-03-01T10:19:00Z,,A,,203.0.113.6,default
"""

BLOCKLIST = """\
# ad and tracking networks
^ads\\.

doubleclick\\.net$
tracker
[unclosed
"""


@pytest.fixture
def routeros_file(tmp_path: Path) -> Path:
    path = tmp_path / "router.log"
    path.write_text(ROUTEROS_LOG, encoding="utf-8")
    return path


@pytest.fixture
def nextdns_file(tmp_path: Path) -> Path:
    path = tmp_path / "a1b2c3.csv"
    path.write_text(NEXTDNS_CSV, encoding="utf-8")
    return path


@pytest.fixture
def blocklist_file(tmp_path: Path) -> Path:
    path = tmp_path / "blocklist.txt"
    path.write_text(BLOCKLIST, encoding="utf-8")
    return path


