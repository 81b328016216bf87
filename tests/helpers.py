"""
Builders for osmChange documents and replication feed responses.
"""

import gzip
import re

BASE_URL = "https://replication.test/minute"
OVERPASS_URL = "https://overpass.test/api/interpreter"

STATE_URL_RE = re.compile(r"^https://replication\.test/minute/state\.txt(\?.*)?$")


def element(kind: str, entity_id: int, lat: float | None = 52.5, lon: float | None = 13.4, tags: dict | None = None) -> str:
    attrs = f'id="{entity_id}" version="2"'
    if lat is not None:
        attrs += f' lat="{lat}"'
    if lon is not None:
        attrs += f' lon="{lon}"'
    children = "".join(f'<tag k="{k}" v="{v}"/>' for k, v in (tags or {}).items())
    return f"<{kind} {attrs}>{children}</{kind}>"


def node(entity_id: int, lat: float | None = 52.5, lon: float | None = 13.4, tags: dict | None = None) -> str:
    return element("node", entity_id, lat, lon, tags)


def osm_change(*sections: tuple[str, list[str]]) -> bytes:
    body = "".join(f"<{name}>{''.join(items)}</{name}>" for name, items in sections)
    return f'<?xml version="1.0" encoding="UTF-8"?><osmChange version="0.6" generator="test">{body}</osmChange>'.encode()


def gz(data: bytes) -> bytes:
    return gzip.compress(data)


def state_txt(sequence: int, timestamp: str = "2024-05-01T12:00:00Z") -> str:
    escaped = timestamp.replace(":", "\\:")
    return f"#Wed May 01 12:00:05 UTC 2024\nsequenceNumber={sequence}\ntimestamp={escaped}\n"


def diff_urls(sequence: int) -> tuple[str, str]:
    padded = str(sequence).zfill(9)
    fragment = f"{padded[0:3]}/{padded[3:6]}/{padded[6:9]}"
    return f"{BASE_URL}/{fragment}.osc.gz", f"{BASE_URL}/{fragment}.state.txt"


BTC = {"payment:bitcoin": "yes", "name": "Satoshi Cafe"}
