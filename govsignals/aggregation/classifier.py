"""Feed group -> signal category mapping.

Categories drive downstream grouping and priority, so the table is explicit
and must only change deliberately.
"""

from __future__ import annotations

DEFAULT_CATEGORY = "administrative"

CATEGORY_BY_FEED_GROUP: dict[str, str] = {
    # Transport Department
    "td_notices": "transport_notice",
    "transport_notices": "transport_notice",
    "td_press": "transport_press",
    "td_special_traffic": "transport_notice",
    "td_clearways": "transport_notice",
    "td_public_transport": "transport_notice",
    "td_road_closure": "transport_notice",
    "td_expressways": "transport_notice",
    # Hong Kong Observatory
    "hko_warnings": "weather_warning",
    "hko_warnings_v3": "weather_warning",
    "hko_warning_bulletin": "weather_warning",
    "hko_current_weather": "weather_warning",
    "hko_current_v2": "weather_warning",
    "hko_forecast": "weather_warning",
    "hko_local_forecast_v2": "weather_warning",
    "hko_9day_v2": "weather_warning",
    "hko_special_tips": "weather_warning",
    "hko_earthquakes": "weather_earthquake",
    "hko_earthquakes_quick": "weather_earthquake",
    "hko_felt_earthquake": "weather_earthquake",
    # Hong Kong Monetary Authority
    "hkma_press": "monetary_press",
    "hkma_circulars": "monetary_circular",
    "hkma_guidelines": "monetary_circular",
    # Centre for Health Protection
    "chp_press": "health_alert",
    "chp_alerts": "health_alert",
    "chp_guidelines": "health_guideline",
    # news.gov.hk
    "gov_news_main": "administrative",
    "gov_news_city": "administrative",
    "gov_news_finance": "monetary_press",
    "gov_news_business": "administrative",
    "gov_news_health": "health_alert",
    "gov_news_infrastructure": "transport_notice",
    "gov_news_environment": "environment",
    # Other departments
    "hkpf_press": "police",
    "fsd_press": "emergency",
    "edb_announcements": "education",
    "immd_announcements": "immigration",
    "lands_press": "lands",
}


def classify_feed_group(feed_group: str) -> str:
    return CATEGORY_BY_FEED_GROUP.get(feed_group, DEFAULT_CATEGORY)
