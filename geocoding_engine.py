import requests
import time
import logging

logger = logging.getLogger(__name__)


class GeocodingEngine:
    """
    Reverse geocoding of event locations.
    Uses OpenStreetMap (Nominatim).
    """

    def __init__(self, user_agent="Jornada-Engine/1.0 (contact@example.com)", rate_limit_seconds=1.1):
        self.user_agent = user_agent
        self.base_url = "https://nominatim.openstreetmap.org/reverse"
        self.rate_limit_seconds = rate_limit_seconds
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.user_agent})
        self.cache = {}

    def reverse_geocode(self, lat, lon):
        """
        Convert coordinates to "City, UF" (state code when in Brazil, country otherwise).
        Nominatim usage policy: 1 request per second.
        """
        cache_key = (round(lat, 3), round(lon, 3))
        if cache_key in self.cache:
            return self.cache[cache_key]

        params = {
            "lat": lat,
            "lon": lon,
            "format": "jsonv2",
            "addressdetails": 1,
            "zoom": 10  # City level
        }

        try:
            # Respect rate limit
            time.sleep(self.rate_limit_seconds)
            response = self.session.get(self.base_url, params=params, timeout=10)
        except requests.RequestException as e:
            logger.error(f"Geocoding error: {e}")
            return "N/A"

        if response.status_code != 200:
            logger.warning(f"Geocoding returned HTTP {response.status_code} for {lat},{lon}")
            return "N/A"

        try:
            # requests.JSONDecodeError is a ValueError
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Geocoding returned a non-JSON body for {lat},{lon}: {e}")
            return "N/A"
        if not isinstance(payload, dict):
            logger.warning(f"Geocoding returned an unexpected payload for {lat},{lon}")
            return "N/A"

        result = self._format_address(payload)
        self.cache[cache_key] = result
        return result

    @staticmethod
    def _format_address(data):
        address = data.get("address", {})
        city = address.get("city") or address.get("town") or address.get("village") or address.get("municipality")
        # "BR-SP" -> "SP"
        region = address.get("ISO3166-2-lvl4", "")
        uf = region.split("-", 1)[1] if "-" in region else address.get("country_code", "").upper()

        if city and uf:
            return f"{city}, {uf}"
        if city:
            return city
        display_name = data.get("display_name", "")
        if display_name:
            parts = display_name.split(",")
            return ", ".join(p.strip() for p in parts[:2])
        return "Unknown"


def enrich_report_with_addresses(report, engine=None):
    """
    Adds an "address" to every event of a report dict that has a start location.
    Identical coordinates (3 decimals) are only looked up once.
    """
    engine = engine or GeocodingEngine()
    events = report.get("events", [])

    for ev in events:
        loc = ev.get("location_start")
        if not loc:
            continue
        ev["address"] = engine.reverse_geocode(loc["latitude"], loc["longitude"])

    report.setdefault("metadata", {})["geocoded"] = True
    return report
