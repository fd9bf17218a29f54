"""Configuration - Environment settings and JSON policy/catalog loading.

Badge catalogs and progression policy are static configuration data. They
are read once at startup and passed to the core as read-only input.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import TypeAdapter

from ..core.badges import DEFAULT_BADGE_CATALOG
from ..core.models import BadgeDefinition
from ..core.policy import ProgressionPolicy
from .firestore_client import FirestoreConfig, ProgressFirestoreClient
from .memory_store import InMemoryProgressStore


logger = logging.getLogger(__name__)

_catalog_adapter = TypeAdapter(list[BadgeDefinition])


@dataclass
class AppConfig:
    """Runtime configuration.

    Attributes:
        store: "firestore" or "memory"
        firestore: Firestore connection settings
        policy_file: Optional JSON file with a ProgressionPolicy
        badge_catalog_file: Optional JSON file with a list of BadgeDefinition
    """

    store: str = "firestore"
    firestore: FirestoreConfig = field(default_factory=FirestoreConfig)
    policy_file: str | None = None
    badge_catalog_file: str | None = None

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            store=os.environ.get("FLYFIT_STORE", "firestore"),
            firestore=FirestoreConfig(
                project_id=os.environ.get("GOOGLE_CLOUD_PROJECT"),
                database=os.environ.get("FIRESTORE_DATABASE", "flyfit"),
            ),
            policy_file=os.environ.get("FLYFIT_POLICY_FILE"),
            badge_catalog_file=os.environ.get("FLYFIT_BADGE_CATALOG"),
        )


def load_policy(path: str | None) -> ProgressionPolicy:
    """Load a progression policy from JSON, or the defaults when path is None.

    Raises:
        pydantic.ValidationError: If the file does not describe a valid policy
    """
    if not path:
        return ProgressionPolicy()
    logger.info("Loading progression policy from %s", path)
    return ProgressionPolicy.model_validate_json(Path(path).read_text())


def load_badge_catalog(path: str | None) -> list[BadgeDefinition]:
    """Load a badge catalog from JSON, or the built-in catalog when path is None.

    Raises:
        pydantic.ValidationError: If an entry is invalid
        ValueError: If two entries share an id
    """
    if not path:
        return list(DEFAULT_BADGE_CATALOG)
    logger.info("Loading badge catalog from %s", path)
    catalog = _catalog_adapter.validate_json(Path(path).read_text())

    ids = [badge.id for badge in catalog]
    if len(ids) != len(set(ids)):
        raise ValueError("Badge catalog contains duplicate ids")
    return catalog


def build_store(config: AppConfig) -> ProgressFirestoreClient | InMemoryProgressStore:
    """Create the persistence store named by the config."""
    if config.store == "memory":
        return InMemoryProgressStore()
    if config.store == "firestore":
        return ProgressFirestoreClient(config.firestore)
    raise ValueError(f"Unknown store: {config.store}")
