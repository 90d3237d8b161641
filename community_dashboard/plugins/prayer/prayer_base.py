import requests
from collections import namedtuple
from datetime import date, datetime
from typing import Dict, Any, Optional
import logging
from abc import ABC, abstractmethod
from community_dashboard.core.cache_helper import CacheHelper

# timings: {prayer_name: datetime on the requested day}; hijri_label: "19 Jumada al-Akhirah 1445"
PrayerDay = namedtuple("PrayerDay", ["timings", "hijri_label"])

DEFAULT_HOLIDAYS_URL = "https://api-harilibur.vercel.app/api"


class PrayerBackend(ABC):
    """Base class for prayer time calculation backends"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.cache_helper = CacheHelper(config.get('cache_dir'), "prayer_times")

    @abstractmethod
    def get_prayer_day(self, day: date, force_fetch: bool = False) -> Optional[PrayerDay]:
        """Get prayer times and the Hijri label for a day
        Args:
            day: Local calendar day to fetch
            force_fetch: If True, bypass cache and fetch fresh data
        Returns:
            PrayerDay or None on error
        """
        pass


class AladhanBackend(PrayerBackend):
    """Prayer times backend using api.aladhan.com"""

    API_URL = "https://api.aladhan.com/v1/timings"
    PRAYER_NAMES = ('Fajr', 'Sunrise', 'Dhuhr', 'Asr', 'Maghrib', 'Isha')

    def get_prayer_day(self, day: date, force_fetch: bool = False) -> Optional[PrayerDay]:
        try:
            cache_key = f"prayer_times_{day.isoformat()}_{self.config.get('lat')}_{self.config.get('lon')}"

            if not force_fetch:
                cached = self.cache_helper.get_cached_content(cache_key, valid_on=day)
                if cached:
                    self.logger.info(f"Got prayer times from cache: {cache_key}")
                    return self._parse_cached(cached)

            prayer_day = self._get_api_prayer_day(day)
            self.cache_helper.save_to_cache(cache_key, self._format_for_cache(prayer_day), saved_on=day)
            return prayer_day

        except Exception as e:
            self.logger.error(f"Error fetching prayer times: {e}")
            return None

    def _format_for_cache(self, prayer_day: PrayerDay) -> Dict[str, Any]:
        return {
            "timings": {name: value.isoformat() for name, value in prayer_day.timings.items()},
            "hijri_label": prayer_day.hijri_label,
        }

    def _parse_cached(self, cached: Dict[str, Any]) -> Optional[PrayerDay]:
        try:
            timings = {name: datetime.fromisoformat(value) for name, value in cached["timings"].items()}
            return PrayerDay(timings, cached.get("hijri_label"))
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Error parsing cached times: {e}")
            return None

    def _get_api_prayer_day(self, day: date) -> PrayerDay:
        url = f"{self.API_URL}/{day.strftime('%d-%m-%Y')}"
        params = {
            'latitude': self.config.get('lat'),
            'longitude': self.config.get('lon'),
            'method': self.config.get('calculation_method', 2),
        }

        self.logger.info(f"Making API request to {url} with params {params}")
        response = requests.get(url, params=params, timeout=self.config.get('timeout', 10))
        response.raise_for_status()
        data = response.json()['data']

        timings = {}
        for prayer in self.PRAYER_NAMES:
            value = data['timings'].get(prayer)
            if not value:
                continue
            # Values may carry a zone suffix, e.g. "04:31 (WIB)"
            timings[prayer] = datetime.strptime(
                f"{day.isoformat()} {value.split()[0]}", '%Y-%m-%d %H:%M'
            )

        hijri = (data.get('date') or {}).get('hijri') or {}
        hijri_label = None
        if hijri:
            hijri_label = f"{hijri.get('day')} {(hijri.get('month') or {}).get('en')} {hijri.get('year')}"

        self.logger.info(f"Prayer times for {day}: {timings}, hijri {hijri_label}")
        return PrayerDay(timings, hijri_label)


def _normalize_iso(value: str) -> Optional[str]:
    """"2024-1-1" -> "2024-01-01"; None when not a Y-M-D string."""
    try:
        year, month, day = (int(part) for part in str(value).split("-"))
        return date(year, month, day).isoformat()
    except (TypeError, ValueError):
        return None


class HolidayBackend:
    """National holidays list; one request per day, cached like prayer times."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.url = config.get('holidays_url') or DEFAULT_HOLIDAYS_URL
        self.logger = logging.getLogger(self.__class__.__name__)
        self.cache_helper = CacheHelper(config.get('cache_dir'), "holidays")

    def get_holidays(self, day: Optional[date] = None) -> Dict[str, str]:
        """{holiday_date: holiday_name} for national holidays; empty on any failure"""
        day = day or date.today()
        cached = self.cache_helper.get_cached_content(self.url, valid_on=day)
        if cached is not None:
            return cached
        try:
            response = requests.get(self.url, timeout=self.config.get('timeout', 10))
            response.raise_for_status()
            entries = response.json()
        except Exception as e:
            self.logger.warning(f"Holiday fetch failed: {e}")
            return {}

        holidays = {}
        for entry in entries if isinstance(entries, list) else []:
            if not isinstance(entry, dict) or not entry.get('is_national_holiday'):
                continue
            iso = _normalize_iso(entry.get('holiday_date'))
            if iso:
                holidays[iso] = entry.get('holiday_name') or ""
        self.cache_helper.save_to_cache(self.url, holidays, saved_on=day)
        self.logger.info(f"Loaded {len(holidays)} national holidays")
        return holidays
