"""Kafka Admin façade built on kafka-python."""
from kafka.admin import KafkaAdminClient  # kafka-python

from dlq_explorer.core.config import Settings
from dlq_explorer.infra.kafka.clients import KafkaClients

INTERNAL_PREFIX = "__"


class KafkaAdminFacade:
    """Encapsulates admin operations against a Kafka cluster."""

    def __init__(self, cfg: Settings) -> None:
        self._client = KafkaAdminClient(
            client_id=f"{cfg.client_id}-admin", **KafkaClients(cfg).common_kwargs()
        )

    def list_topics(self) -> list[str]:
        """Return the names of all non-internal topics."""
        names = self._client.list_topics()
        return [n for n in names if not n.startswith(INTERNAL_PREFIX)]

    def close(self) -> None:
        self._client.close()
