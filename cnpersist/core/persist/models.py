from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cnpersist.core.persist.filters import validate_mask
from cnpersist.core.persist.serialization import Deserializer, PostHandler, Serializer
from cnpersist.core.storage.base import SafeStorage


class PersistPolicy(str, Enum):
    """
    STRING: the whole field is serialized under its field key.
    HASH: the field is a mapping persisted entry by entry, plus a key-set under
    the field key listing the stored entry ids.
    """

    STRING = "STRING"
    HASH = "HASH"


class EventPolicy(str, Enum):
    STRING = "STRING"
    HASH = "HASH"
    HASH_RESET = "HASH_RESET"


RestoreHook = Callable[[Any], None]


class FieldPersistOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    policy: PersistPolicy = PersistPolicy.STRING
    storage: Optional[Any] = None
    # With policy HASH the masks apply to each entry value, not to the mapping.
    includes: Optional[Dict[str, Any]] = None
    excludes: Optional[Dict[str, Any]] = None
    # Returning None from serialize skips the write; from deserialize, skips the restore.
    serialize: Optional[Callable[[Any], Optional[str]]] = None
    deserialize: Optional[Callable[[str], Any]] = None
    deserialize_post_handler: Optional[Callable[[Any], Any]] = None
    hash_action_name: Optional[str] = None

    @field_validator("includes", "excludes")
    @classmethod
    def _mask_shape(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is None:
            return v
        return validate_mask(v)


class StorePersistOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    key: Optional[Union[str, Callable[[str], str]]] = None
    storage: Optional[Any] = None
    states: Dict[str, Union[bool, FieldPersistOptions]] = Field(default_factory=dict)
    debug: Optional[bool] = None
    hash_action_prefix: Optional[str] = None
    before_restore: Optional[Callable[[Any], None]] = None
    after_restore: Optional[Callable[[Any], None]] = None


class PersistFactoryOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    storage: Optional[Any] = None
    debug: bool = False
    # <= 0 disables debouncing: every emit flushes synchronously.
    global_debounce_ms: int = 500
    key: Optional[Callable[[str], str]] = None
    auto: bool = False
    hash_action_prefix: str = "set_"


@dataclass
class PersistEvent:
    policy: EventPolicy
    storage_key: str
    new_value: Any
    serialize: Serializer
    storage: SafeStorage


@dataclass
class StorePersistContext:
    store_id: str
    key: str
    debug: bool
    states: Dict[str, FieldPersistOptions]
    store_state: Dict[str, Any]
    hash_action_prefix: str
    storage: SafeStorage
    before_restore: Optional[RestoreHook] = None
    after_restore: Optional[RestoreHook] = None


@dataclass(frozen=True)
class FieldPersistContext:
    field_id: str
    persist_key: str
    hash_action_name: str
    policy: PersistPolicy
    storage: SafeStorage
    serialize: Serializer
    deserialize: Deserializer
    deserialize_post_handler: PostHandler
    store_context: StorePersistContext = field(repr=False, compare=False)

    @property
    def store_state(self) -> Dict[str, Any]:
        return self.store_context.store_state
