"""Fetch static JSON documents from disk or over HTTP."""

import asyncio
import json
import logging
from pathlib import Path

import httpx

from ocpexplorer.core.errors import DataUnavailable

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=5.0)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def join_source(base: str, name: str) -> str:
    """Join a directory or base URL with a file name."""
    if is_url(base):
        return f"{base.rstrip('/')}/{name}"
    return str(Path(base) / name)


async def fetch_json(client: httpx.AsyncClient, source: str) -> dict:
    """Load a JSON object from a path or URL.

    Raises:
        DataUnavailable: on any network, filesystem or parse failure, or when
            the document is not a JSON object.
    """
    try:
        if is_url(source):
            resp = await client.get(source)
            resp.raise_for_status()
            payload = resp.json()
        else:
            text = await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
            payload = json.loads(text)
    except (httpx.HTTPError, OSError, ValueError) as e:
        logger.warning("Failed to load %s: %s", source, e)
        raise DataUnavailable(f"Failed to load {source}: {e}") from e

    if not isinstance(payload, dict):
        raise DataUnavailable(f"Expected a JSON object in {source}")
    return payload
