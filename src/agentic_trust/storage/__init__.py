"""Content-addressed storage."""

from agentic_trust.storage.ipfs import IPFSStorage, extract_cid, parse_data_uri

__all__ = ["IPFSStorage", "extract_cid", "parse_data_uri"]
