from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Kafka — change feed of graph puts
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_diffs: str = "gun-put-diff"
    kafka_consumer_group: str = "listing-indexer"

    # Redis — graph store (one hash per soul)
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    # Identities
    # `indexer` authenticates against the store, `tabulator` owns the
    # listing namespace and filters vote-count notifications.
    indexer: str = "indexer"
    tabulator: Optional[str] = None

    # Deadlines for every store read / combined write
    read_timeout_ms: int = 2000
    write_timeout_ms: int = 2000

    # 1 = drain sequentially
    index_concurrency: int = 1

    # Shared read scope
    read_cache_max_entries: int = 10_000
    read_cache_ttl_seconds: float = 30.0

    # Observability
    metrics_port: int = 9102
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "listing-indexer"

    @model_validator(mode="after")
    def _default_tabulator(self) -> "Settings":
        if not self.tabulator:
            self.tabulator = self.indexer
        return self

    @property
    def read_timeout(self) -> float:
        return self.read_timeout_ms / 1000

    @property
    def write_timeout(self) -> float:
        return self.write_timeout_ms / 1000

    class Config:
        env_file = ".env"


settings = Settings()
