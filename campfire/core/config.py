"""Configuration management for forest matching and coordinate resolution."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
GEOCODE_CACHE_PATH = Path(os.getenv("GEOCODE_CACHE_PATH", DATA_DIR / "cache" / "coordinates.duckdb"))

# 0 disables expiry; entries then live until they are found to be stale
GEOCODE_CACHE_TTL_SECONDS: int = int(os.getenv("GEOCODE_CACHE_TTL_SECONDS", "0"))

# Provider endpoints and credentials
GOOGLE_MAPS_API_KEY: Optional[str] = os.getenv("GOOGLE_MAPS_API_KEY") or None
GOOGLE_GEOCODING_URL: str = os.getenv(
    "GOOGLE_GEOCODING_URL", "https://maps.googleapis.com/maps/api/geocode/json"
)
FORESTRY_ARCGIS_URL: Optional[str] = os.getenv("FORESTRY_ARCGIS_URL") or None
NOMINATIM_PORT: str = os.getenv("NOMINATIM_PORT", "8080")
NOMINATIM_BASE_URL: str = os.getenv("NOMINATIM_BASE_URL", f"http://localhost:{NOMINATIM_PORT}")
NOMINATIM_PUBLIC_URL: str = os.getenv("NOMINATIM_PUBLIC_URL", "https://nominatim.openstreetmap.org")
NOMINATIM_USER_AGENT: str = os.getenv(
    "NOMINATIM_USER_AGENT",
    "campfire-allowed-near-me/1.0 (forest coordinate resolver)"
)

# Request behaviour
GEOCODE_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("GEOCODE_REQUEST_TIMEOUT_SECONDS", "15"))
GEOCODE_RETRY_ATTEMPTS: int = int(os.getenv("GEOCODE_RETRY_ATTEMPTS", "3"))
GEOCODE_RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("GEOCODE_RETRY_BASE_DELAY_SECONDS", "0.75"))
NOMINATIM_REQUEST_DELAY_SECONDS: float = float(os.getenv("NOMINATIM_REQUEST_DELAY_SECONDS", "1.2"))
NOMINATIM_LOCAL_DELAY_SECONDS: float = float(os.getenv("NOMINATIM_LOCAL_DELAY_SECONDS", "0.2"))
NOMINATIM_LOCAL_429_RETRIES: int = int(os.getenv("NOMINATIM_LOCAL_429_RETRIES", "4"))
NOMINATIM_LOCAL_429_RETRY_DELAY_SECONDS: float = float(
    os.getenv("NOMINATIM_LOCAL_429_RETRY_DELAY_SECONDS", "1.5")
)

# Commercial geocoder calls allowed per pipeline run
MAX_GEOCODE_LOOKUPS_PER_RUN: int = int(os.getenv("MAX_GEOCODE_LOOKUPS_PER_RUN", "25"))

# Appended to every geocoder query
GEOCODE_REGION_SUFFIX: str = os.getenv("GEOCODE_REGION_SUFFIX", "New South Wales, Australia")

# Matching thresholds
FACILITY_MATCH_THRESHOLD: float = float(os.getenv("FACILITY_MATCH_THRESHOLD", "0.62"))
CLOSURE_MATCH_THRESHOLD: float = float(os.getenv("CLOSURE_MATCH_THRESHOLD", "0.68"))

# Projected CRS used for polygon centroids (Australian Albers)
CENTROID_CRS: str = os.getenv("CENTROID_CRS", "EPSG:3577")

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


@dataclass
class GeocoderConfig:
    """Settings consumed by the coordinate resolver and its providers."""
    google_api_key: Optional[str] = None
    google_geocoding_url: str = GOOGLE_GEOCODING_URL
    arcgis_url: Optional[str] = None
    nominatim_base_url: Optional[str] = None
    nominatim_public_url: Optional[str] = NOMINATIM_PUBLIC_URL
    nominatim_user_agent: str = NOMINATIM_USER_AGENT
    request_timeout_seconds: float = GEOCODE_REQUEST_TIMEOUT_SECONDS
    retry_attempts: int = GEOCODE_RETRY_ATTEMPTS
    retry_base_delay_seconds: float = GEOCODE_RETRY_BASE_DELAY_SECONDS
    nominatim_request_delay_seconds: float = NOMINATIM_REQUEST_DELAY_SECONDS
    nominatim_local_delay_seconds: float = NOMINATIM_LOCAL_DELAY_SECONDS
    nominatim_local_429_retries: int = NOMINATIM_LOCAL_429_RETRIES
    nominatim_local_429_retry_delay_seconds: float = NOMINATIM_LOCAL_429_RETRY_DELAY_SECONDS
    max_new_lookups_per_run: int = MAX_GEOCODE_LOOKUPS_PER_RUN
    region_suffix: str = GEOCODE_REGION_SUFFIX
    centroid_crs: str = CENTROID_CRS

    @classmethod
    def from_env(cls) -> "GeocoderConfig":
        """Build a config from the module-level environment settings."""
        return cls(
            google_api_key=GOOGLE_MAPS_API_KEY,
            google_geocoding_url=GOOGLE_GEOCODING_URL,
            arcgis_url=FORESTRY_ARCGIS_URL,
            nominatim_base_url=NOMINATIM_BASE_URL,
            nominatim_public_url=NOMINATIM_PUBLIC_URL,
            nominatim_user_agent=NOMINATIM_USER_AGENT,
            request_timeout_seconds=GEOCODE_REQUEST_TIMEOUT_SECONDS,
            retry_attempts=GEOCODE_RETRY_ATTEMPTS,
            retry_base_delay_seconds=GEOCODE_RETRY_BASE_DELAY_SECONDS,
            nominatim_request_delay_seconds=NOMINATIM_REQUEST_DELAY_SECONDS,
            nominatim_local_delay_seconds=NOMINATIM_LOCAL_DELAY_SECONDS,
            nominatim_local_429_retries=NOMINATIM_LOCAL_429_RETRIES,
            nominatim_local_429_retry_delay_seconds=NOMINATIM_LOCAL_429_RETRY_DELAY_SECONDS,
            max_new_lookups_per_run=MAX_GEOCODE_LOOKUPS_PER_RUN,
            region_suffix=GEOCODE_REGION_SUFFIX,
            centroid_crs=CENTROID_CRS,
        )
