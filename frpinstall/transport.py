"""
HOMESERVER Release Installer
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
HTTP transport for the registry query and asset downloads.

The pipeline only needs two capabilities: fetch a JSON document and stream
a URL to a file. Anything with `get_json(url)` and `download(url, dest)`
methods can stand in for RequestsDownloader.
"""

import os
from pathlib import Path
from typing import Any, Optional, Union

import requests

from . import __version__
from .utils.index import log_message

CHUNK_SIZE = 64 * 1024


class TransportError(Exception):
    """An HTTP request failed or returned an unusable response."""
    pass


class RequestsDownloader:
    """Downloader backed by a requests session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = 60):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", f"frpinstall/{__version__}")
        self.timeout = timeout

    def get_json(self, url: str) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            TransportError: Network error, non-2xx status or invalid JSON
        """
        log_message(f"Querying {url}", "DEBUG")
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/vnd.github+json"},
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON: {e}") from e

    def download(self, url: str, dest: Union[str, Path]) -> Path:
        """
        Stream a URL to a file, following redirects.

        A partially written file is removed on failure.

        Returns:
            Path: The written file

        Raises:
            TransportError: Network or filesystem error
        """
        dest = Path(dest)
        log_message(f"Downloading {url}", "DEBUG")
        try:
            with self.session.get(url, stream=True, allow_redirects=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(dest, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except (requests.RequestException, OSError) as e:
            if dest.exists():
                os.remove(dest)
            raise TransportError(f"Download of {url} failed: {e}") from e
        return dest
