"""Dead-letter topic discovery over broker metadata."""
from __future__ import annotations

import logging
import re
from typing import Callable, List

from kafka.errors import KafkaError

from dlq_explorer.core.exceptions import BrokerUnavailable
from dlq_explorer.infra.kafka.admin import KafkaAdminFacade

logger = logging.getLogger(__name__)


class DlqTopicService:
    """Stateless wrapper combining the admin facade and the naming convention."""

    def __init__(self, admin_factory: Callable[[], KafkaAdminFacade], pattern: str = r".*-DLQ$") -> None:
        self._admin_factory = admin_factory
        self._pattern = re.compile(pattern)

    def list_dead_letter_topics(self) -> List[str]:
        """Return sorted topic names fully matching the dead-letter pattern."""
        admin = None
        try:
            admin = self._admin_factory()
            names = admin.list_topics()
        except KafkaError as exc:
            logger.error("Listing topics failed: %s", exc)
            raise BrokerUnavailable(f"Cannot list topics: {exc}") from exc
        finally:
            if admin is not None:
                admin.close()
        return sorted(n for n in names if self._pattern.fullmatch(n))
