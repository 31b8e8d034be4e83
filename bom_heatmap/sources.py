"""Upload guard and public-URL download for BOM CSV sources."""

from __future__ import annotations

import logging
import re
from email.message import Message
from pathlib import Path
from typing import Optional
from urllib.parse import ParseResult as ParsedUrl, parse_qs, unquote, urlencode, urlparse, urlunparse

import requests

from bom_heatmap.config import MAX_CSV_FILE_SIZE, REMOTE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

CSV_SUFFIX = ".csv"
CSV_CONTENT_TYPES = {"text/csv", "application/csv", "text/plain", "application/vnd.ms-excel"}
NOT_CSV_ERROR = "Please select a CSV file"
DEFAULT_REMOTE_NAME = "downloaded_bom"


class RemoteSourceError(ValueError):
    pass


def format_megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}"


def check_upload(filename: str, size: Optional[int], *, max_bytes: int = MAX_CSV_FILE_SIZE) -> list[str]:
    """Fatal messages for a file that must not reach the importer; empty when it may."""
    if Path(filename or "").suffix.lower() != CSV_SUFFIX:
        return [NOT_CSV_ERROR]
    if size is not None and size > max_bytes:
        return [
            f"File is too large ({format_megabytes(size)} MB). "
            f"Maximum size is {max_bytes // (1024 * 1024)} MB."
        ]
    return []


def _github_raw(parsed: ParsedUrl) -> Optional[str]:
    if parsed.netloc.lower() != "github.com":
        return None
    match = re.match(r"^/([^/]+)/([^/]+)/(?:blob|raw)/(.+)$", parsed.path)
    if not match:
        return None
    owner, repo, ref_and_path = match.groups()
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{ref_and_path}"


def _google_export(parsed: ParsedUrl) -> Optional[str]:
    host = parsed.netloc.lower()
    if host not in {"docs.google.com", "drive.google.com"}:
        return None
    sheet = re.search(r"/spreadsheets/d/([^/]+)", parsed.path)
    if sheet:
        # Sheets puts the tab id in the fragment when copied from the address bar.
        params = {**parse_qs(parsed.fragment), **parse_qs(parsed.query)}
        gid = params.get("gid", ["0"])[0]
        return f"https://docs.google.com/spreadsheets/d/{sheet.group(1)}/export?format=csv&gid={gid}"
    drive_file = re.search(r"/file/d/([^/]+)", parsed.path)
    if drive_file:
        return f"https://drive.google.com/uc?export=download&id={drive_file.group(1)}"
    return None


def _dropbox_download(parsed: ParsedUrl) -> Optional[str]:
    if not parsed.netloc.lower().endswith("dropbox.com"):
        return None
    query = parse_qs(parsed.query, keep_blank_values=True)
    query["dl"] = ["1"]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


SHARE_LINK_REWRITES = (_github_raw, _google_export, _dropbox_download)


def normalize_public_url(raw_url: str) -> str:
    """Turn a GitHub, Google Sheets/Drive or Dropbox share link into its CSV download URL."""
    url = raw_url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise RemoteSourceError("URL must start with http:// or https://")
    for rewrite in SHARE_LINK_REWRITES:
        direct = rewrite(parsed)
        if direct:
            logger.debug("Rewrote share link %s to %s", url, direct)
            return direct
    return url


def remote_filename(raw_url: str, response: requests.Response) -> str:
    """Name from Content-Disposition, else the last segment of the final URL."""
    disposition = response.headers.get("content-disposition")
    if disposition:
        header = Message()
        header["content-disposition"] = disposition
        declared = header.get_filename()
        if declared:
            return Path(declared.strip()).name
    for url in (response.url, raw_url):
        name = unquote(Path(urlparse(url or "").path).name)
        if name:
            return name
    return DEFAULT_REMOTE_NAME


def _looks_like_csv(response: requests.Response, filename: str) -> bool:
    if Path(filename).suffix.lower() == CSV_SUFFIX:
        return True
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    return content_type in CSV_CONTENT_TYPES


def fetch_remote_csv(
    raw_url: str,
    *,
    max_bytes: int = MAX_CSV_FILE_SIZE,
    timeout: float = REMOTE_TIMEOUT_SECONDS,
) -> tuple[str, bytes]:
    """Download a public CSV, enforcing ``max_bytes``; returns ``(filename, content)``."""
    url = normalize_public_url(raw_url)
    limit_message = f"Remote file is larger than {max_bytes // (1024 * 1024)} MB."
    logger.info("Fetching remote BOM from %s", url)
    try:
        response = requests.get(url, timeout=timeout, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise RemoteSourceError(f"Could not download {raw_url}: {exc}") from exc
    try:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RemoteSourceError(f"Could not download {raw_url}: {exc}") from exc
        content_length = response.headers.get("Content-Length")
        if content_length:
            try:
                declared_size = int(content_length)
            except ValueError:
                declared_size = None
            if declared_size and declared_size > max_bytes:
                raise RemoteSourceError(limit_message)

        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > max_bytes:
                raise RemoteSourceError(limit_message)
            chunks.append(chunk)
        content = b"".join(chunks)
    finally:
        response.close()

    filename = remote_filename(raw_url, response)
    if not _looks_like_csv(response, filename):
        raise RemoteSourceError(NOT_CSV_ERROR)
    if Path(filename).suffix.lower() != CSV_SUFFIX:
        filename = f"{Path(filename).stem or DEFAULT_REMOTE_NAME}{CSV_SUFFIX}"
    logger.debug("Downloaded %d bytes as %s", len(content), filename)
    return filename, content
