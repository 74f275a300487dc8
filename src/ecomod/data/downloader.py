"""HTTP dataset download with on-disk caching.

Fetches the public CSV inputs of the workflows (leaf nitrogen table,
Geo-Wiki land-cover reference points, Daymet single-pixel temperature,
PhenoCam transition dates and GCC series) into the run's download
directory. Local paths pass straight through, so every workflow input can
be either a URL or a file.
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING
from urllib.parse import urlparse

import requests

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['DatasetDownloader']

logger = logging.getLogger(__name__)

DAYMET_SINGLE_PIXEL_API = "https://daymet.ornl.gov/single-pixel/api/data"
PHENOCAM_ARCHIVE = "https://phenocam.nau.edu/data/archive"


class DatasetDownloader:
    """Downloads input datasets over HTTP and caches them locally.

    **Caching:** A source is downloaded once per download directory. If the
    target file already exists and is at least `min_file_size` bytes, the
    cached copy is returned without a request. Safe to rerun.

    **Local sources:** Anything that is not an http(s) URL is treated as a
    path and returned unchanged. The path must exist.

    **Validation:** Responses with an HTTP error status raise
    `requests.HTTPError`; bodies smaller than `min_file_size` raise
    `ValueError` and are not written to disk.

    Example usage::

        downloader = DatasetDownloader(config, download_dir=output_dirs["downloads"])
        path = downloader.fetch(config.data.leaf_nitrogen_source)
        url = downloader.daymet_url(42.5378, -72.1715, 2008, 2022)
        temps = downloader.fetch(url, filename="harvard_daymet.csv")
    """

    def __init__(self, config: "InternalConfig", download_dir: Path | str,
                 session: Optional[requests.Session] = None):
        """Initialize downloader.

        Parameters
        ----------
        config : InternalConfig
            Runtime configuration; `data.download_timeout_sec` and
            `data.min_file_size` are used.
        download_dir : Path or str
            Directory where downloaded files are stored. Created if needed.
        session : requests.Session, optional
            HTTP session. If None, creates a new one. Allows injection for
            testing.
        """
        self.timeout = config.data.download_timeout_sec
        self.min_file_size = config.data.min_file_size
        self.download_dir = Path(download_dir)
        self.session = session or requests.Session()

    @staticmethod
    def is_url(source: str) -> bool:
        """Return True for http(s) URLs."""
        return urlparse(str(source)).scheme in ("http", "https")

    def fetch(self, source: str, filename: Optional[str] = None) -> Path:
        """Return a local path for `source`, downloading it if it is a URL.

        Parameters
        ----------
        source : str
            Local path or http(s) URL.
        filename : str, optional
            Name of the cached file. Defaults to the last URL path segment.

        Returns
        -------
        Path
            Path to the local file.

        Raises
        ------
        FileNotFoundError
            If a local source does not exist.
        requests.HTTPError
            If the server returns an error status.
        ValueError
            If the response body is smaller than `min_file_size`.
        """
        if not self.is_url(source):
            path = Path(source).expanduser()
            if not path.exists():
                raise FileNotFoundError(f"Input not found: {path}")
            return path

        if filename is None:
            filename = Path(urlparse(source).path).name or "download.csv"
        target = self.download_dir / filename

        if target.exists() and target.stat().st_size >= self.min_file_size:
            logger.info("Using cached download: %s", target)
            return target

        logger.info("Downloading %s", source)
        response = self.session.get(source, timeout=self.timeout)
        response.raise_for_status()

        content = response.content
        if len(content) < self.min_file_size:
            raise ValueError(
                f"Download too small ({len(content)} bytes < {self.min_file_size}): {source}"
            )

        self.download_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info("Saved %s (%.1f kB)", target, len(content) / 1024)
        return target

    @staticmethod
    def daymet_url(lat: float, lon: float, start_year: int, end_year: int,
                   variables: tuple = ("tmax", "tmin")) -> str:
        """Build a Daymet single-pixel API request for daily data.

        Examples
        --------
        >>> DatasetDownloader.daymet_url(42.5378, -72.1715, 2010, 2011)
        'https://daymet.ornl.gov/single-pixel/api/data?lat=42.5378&lon=-72.1715&vars=tmax,tmin&years=2010,2011'
        """
        years = ",".join(str(y) for y in range(start_year, end_year + 1))
        return (
            f"{DAYMET_SINGLE_PIXEL_API}?lat={lat}&lon={lon}"
            f"&vars={','.join(variables)}&years={years}"
        )

    @staticmethod
    def phenocam_transition_url(site: str, veg_type: str, roi_id: int, frequency: int = 3) -> str:
        """Build the PhenoCam archive URL of a site's transition dates file."""
        return (
            f"{PHENOCAM_ARCHIVE}/{site}/ROI/"
            f"{site}_{veg_type}_{roi_id:04d}_{frequency}day_transition_dates.csv"
        )

    @staticmethod
    def phenocam_gcc_url(site: str, veg_type: str, roi_id: int, frequency: int = 3) -> str:
        """Build the PhenoCam archive URL of a site's GCC time series."""
        return (
            f"{PHENOCAM_ARCHIVE}/{site}/ROI/"
            f"{site}_{veg_type}_{roi_id:04d}_{frequency}day.csv"
        )
