from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
# Log a progress line every this many bytes.
PROGRESS_EVERY = 256 * 1024 * 1024


class DownloadError(RuntimeError):
    pass


def _partial_path(dest: Path) -> Path:
    return dest.with_name(dest.name + ".part")


def download_file(
    url: str,
    dest: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Tuple[float, float] = (30.0, 300.0),
    session: Optional[requests.Session] = None,
    dry_run: bool = False,
) -> Path:
    """Stream ``url`` into ``dest``.

    Data lands in ``<dest>.part`` first and is renamed into place only after
    the whole body was written, so ``dest`` existing means a complete file.
    The partial file is removed on every failure, interrupts included;
    network, filesystem and malformed-response errors raise DownloadError.
    """

    out = Path(dest)
    part = _partial_path(out)
    logger.info("GET %s -> %s", url, out)
    if dry_run:
        return out

    http = session or requests.Session()
    written = 0
    replaced = False
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        with http.get(url, headers=dict(headers or {}), stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length") or 0)
            next_report = PROGRESS_EVERY
            with open(part, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if written >= next_report:
                        if total:
                            logger.info("Downloaded %d/%d MiB", written >> 20, total >> 20)
                        else:
                            logger.info("Downloaded %d MiB", written >> 20)
                        next_report += PROGRESS_EVERY
        os.replace(part, out)
        replaced = True
    except (requests.RequestException, OSError, ValueError) as e:
        raise DownloadError(f"Download failed: {url}: {e}") from e
    finally:
        if not replaced:
            part.unlink(missing_ok=True)
        if session is None:
            http.close()

    logger.info("Saved %s (%d bytes)", out, written)
    return out
