"""
Identifier Parser

Turns the raw ?hash= value into a validated ContentIdentifier. The check is
syntactic only (alphabet and length), so malformed input is rejected before
any upstream is contacted.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidHashFormat, MissingIdentifier

# CIDv0 (base58btc, 46 chars) or CIDv1 (base32, "bafy" prefix)
CID_PATTERN = re.compile(r"Qm[1-9A-HJ-NP-Za-km-z]{44}|bafy[a-z2-7]{55}")


@dataclass(frozen=True)
class ContentIdentifier:
    """A validated IPFS identifier plus the path inside it."""
    raw: str
    clean_id: str
    sub_path: str = ""

    @property
    def ipfs_path(self) -> str:
        return f"/ipfs/{self.clean_id}{self.sub_path}"


def is_valid_cid(value: str) -> bool:
    return bool(CID_PATTERN.fullmatch(value))


def normalize_path(path: Optional[str]) -> str:
    """Empty, or a path starting with a single '/'."""
    if not path:
        return ""
    return "/" + path.lstrip("/")


def parse_identifier(raw: Optional[str], path: Optional[str] = None) -> ContentIdentifier:
    """
    Parse and validate a raw identifier.

    Args:
        raw: Value of the hash parameter, e.g. "ipfs/Qm.../img/1.png"
        path: Explicit sub-path; wins over a path embedded in raw

    Raises:
        MissingIdentifier: raw is missing or empty
        InvalidHashFormat: the identifier part is not a CIDv0/CIDv1
    """
    if not raw:
        raise MissingIdentifier()

    candidate = raw
    if candidate.startswith("ipfs/"):
        candidate = candidate[len("ipfs/"):]
    if candidate.startswith("/"):
        candidate = candidate[1:]

    embedded_path = ""
    slash = candidate.find("/")
    if slash != -1:
        candidate, embedded_path = candidate[:slash], candidate[slash:]

    if not is_valid_cid(candidate):
        raise InvalidHashFormat(candidate)

    sub_path = normalize_path(path) if path else embedded_path
    return ContentIdentifier(raw=raw, clean_id=candidate, sub_path=sub_path)
