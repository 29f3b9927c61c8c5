"""
Country detection for the chat channel connection string.

Tries, in order: cached value, timezone map, locale suffix, optional IP
geolocation lookup, then the configured default.
"""
import logging
import re
import time
from typing import Optional, Dict, Tuple
from dataclasses import dataclass
import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 7 * 24 * 60 * 60

TIMEZONE_TO_COUNTRY: Dict[str, str] = {
    "America/New_York": "US", "America/Chicago": "US", "America/Denver": "US",
    "America/Los_Angeles": "US", "America/Phoenix": "US", "America/Anchorage": "US",
    "America/Honolulu": "US", "America/Toronto": "CA", "America/Vancouver": "CA",
    "America/Mexico_City": "MX", "America/Sao_Paulo": "BR",
    "America/Argentina/Buenos_Aires": "AR", "America/Lima": "PE",
    "America/Santiago": "CL", "America/Bogota": "CO", "America/Caracas": "VE",
    "Europe/London": "GB", "Europe/Dublin": "IE", "Europe/Paris": "FR",
    "Europe/Berlin": "DE", "Europe/Rome": "IT", "Europe/Madrid": "ES",
    "Europe/Amsterdam": "NL", "Europe/Brussels": "BE", "Europe/Vienna": "AT",
    "Europe/Zurich": "CH", "Europe/Stockholm": "SE", "Europe/Oslo": "NO",
    "Europe/Copenhagen": "DK", "Europe/Helsinki": "FI", "Europe/Warsaw": "PL",
    "Europe/Prague": "CZ", "Europe/Budapest": "HU", "Europe/Lisbon": "PT",
    "Europe/Athens": "GR", "Europe/Istanbul": "TR", "Europe/Moscow": "RU",
    "Asia/Karachi": "PK", "Asia/Kolkata": "IN", "Asia/Dhaka": "BD",
    "Asia/Colombo": "LK", "Asia/Kathmandu": "NP", "Asia/Tokyo": "JP",
    "Asia/Shanghai": "CN", "Asia/Hong_Kong": "HK", "Asia/Singapore": "SG",
    "Asia/Seoul": "KR", "Asia/Taipei": "TW", "Asia/Bangkok": "TH",
    "Asia/Jakarta": "ID", "Asia/Manila": "PH", "Asia/Kuala_Lumpur": "MY",
    "Asia/Ho_Chi_Minh": "VN", "Asia/Dubai": "AE", "Asia/Riyadh": "SA",
    "Asia/Tehran": "IR", "Australia/Sydney": "AU", "Australia/Melbourne": "AU",
    "Australia/Perth": "AU", "Australia/Adelaide": "AU", "Australia/Brisbane": "AU",
    "Pacific/Auckland": "NZ", "Africa/Cairo": "EG", "Africa/Johannesburg": "ZA",
    "Africa/Lagos": "NG", "Africa/Nairobi": "KE",
}

_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")


@dataclass
class CountryDetectionResult:
    """Detected country and how it was found"""
    country_code: str
    method: str  # stored, timezone, locale, ip, default
    confidence: str  # high, medium, low


class CountryDetector:
    """Detects the visitor country code with a 7 day cache"""

    def __init__(
        self,
        lookup_url: Optional[str] = None,
        default_code: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.lookup_url = lookup_url if lookup_url is not None else settings.COUNTRY_LOOKUP_URL
        self.default_code = default_code or settings.DEFAULT_COUNTRY_CODE
        self.client = client
        self._cached: Optional[Tuple[str, float]] = None

    def from_timezone(self, timezone: Optional[str]) -> Optional[str]:
        if not timezone:
            return None
        return TIMEZONE_TO_COUNTRY.get(timezone)

    def from_locale(self, locale: Optional[str]) -> Optional[str]:
        """'en-GB' / 'pt_BR' -> region part when it looks like a country code"""
        if not locale:
            return None
        parts = re.split(r"[-_]", locale)
        if len(parts) < 2:
            return None
        code = parts[-1].upper()
        return code if _COUNTRY_RE.match(code) else None

    async def from_ip(self) -> Optional[str]:
        if not self.lookup_url:
            return None
        try:
            if self.client is not None:
                response = await self.client.get(self.lookup_url, headers={"Accept": "application/json"})
            else:
                async with httpx.AsyncClient(timeout=5) as client:
                    response = await client.get(self.lookup_url, headers={"Accept": "application/json"})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"IP geolocation failed: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"IP geolocation returned unexpected payload: {data!r}")
            return None
        code = data.get("countryCode") or data.get("country_code")
        if isinstance(code, str) and _COUNTRY_RE.match(code.upper()):
            return code.upper()
        return None

    def cached(self) -> Optional[str]:
        if self._cached is None:
            return None
        code, stored_at = self._cached
        if time.time() - stored_at < CACHE_TTL_SECONDS:
            return code
        self._cached = None
        return None

    async def detect(
        self,
        timezone: Optional[str] = None,
        locale: Optional[str] = None
    ) -> CountryDetectionResult:
        stored = self.cached()
        if stored:
            return CountryDetectionResult(stored, "stored", "high")

        code = self.from_timezone(timezone)
        if code:
            result = CountryDetectionResult(code, "timezone", "medium")
        else:
            code = self.from_locale(locale)
            if code:
                result = CountryDetectionResult(code, "locale", "low")
            else:
                code = await self.from_ip()
                if code:
                    result = CountryDetectionResult(code, "ip", "high")
                else:
                    return CountryDetectionResult(self.default_code, "default", "low")

        self._cached = (result.country_code, time.time())
        logger.debug(f"Detected country {result.country_code} via {result.method}")
        return result
