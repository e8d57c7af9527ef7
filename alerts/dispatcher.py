from __future__ import annotations

import logging
from dataclasses import dataclass, field

from alerts.messages import format_alert_message, format_alert_subject
from alerts.processed import ProcessedSet
from alerts.topics import TopicManager
from geo.resolver import UNKNOWN_COUNTRY, count_by_country, group_by_country
from store.models import Disaster


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    by_country: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "sent": len(self.sent),
            "failed": len(self.failed),
            "failed_ids": list(self.failed),
            "by_country": dict(self.by_country),
        }


class AlertDispatcher:
    """Keeps per-country topic counts current and publishes new-event alerts.

    Failures are contained per country (counts) and per disaster (alerts): a
    failed publish is logged and left out of the processed set, and the rest
    of the batch still goes out.
    """

    def __init__(self, *, topics: TopicManager, processed: ProcessedSet) -> None:
        self._topics = topics
        self._processed = processed

    async def refresh_counts(
        self, active: list[Disaster], countries: dict[str, str]
    ) -> dict[str, int]:
        counts = {
            country: n
            for country, n in count_by_country(active, countries).items()
            if country != UNKNOWN_COUNTRY
        }
        logger.info("active disasters in %d countries", len(counts))

        for country, n in counts.items():
            try:
                await self._topics.get_or_create(country)
                self._topics.update_count(country, n)
            except Exception as e:
                logger.error("failed to update topic for %s: %s", country, e)

        self._topics.reset_counts(counts)
        return counts

    async def dispatch(
        self, new: list[Disaster], countries: dict[str, str]
    ) -> DispatchResult:
        result = DispatchResult()
        for country, disasters in group_by_country(new, countries).items():
            logger.info("sending %d alerts for %s", len(disasters), country)
            for disaster in disasters:
                try:
                    await self._topics.publish(
                        country,
                        format_alert_subject(disaster, country),
                        format_alert_message(disaster),
                        disaster_id=disaster.disaster_id,
                    )
                except Exception:
                    # left out of the processed set so the next cycle retries it
                    logger.exception(
                        "alert for %s in %s not sent", disaster.disaster_id, country
                    )
                    result.failed.append(disaster.disaster_id)
                    continue
                self._processed.add(disaster.disaster_id)
                result.sent.append(disaster.disaster_id)
                result.by_country[country] = result.by_country.get(country, 0) + 1
        return result
