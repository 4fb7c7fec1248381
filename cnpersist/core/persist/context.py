from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Union

from pydantic import ValidationError

from cnpersist.core.errors import ConfigurationError
from cnpersist.core.persist.filters import produce_filter
from cnpersist.core.persist.keys import field_key
from cnpersist.core.persist.models import (
    FieldPersistContext,
    FieldPersistOptions,
    PersistFactoryOptions,
    StorePersistContext,
    StorePersistOptions,
)
from cnpersist.core.persist.serialization import compose_serializer, default_deserialize, default_post_handler
from cnpersist.core.storage.base import SafeStorage, StorageLike
from cnpersist.core.storage.file import default_storage

StoreOption = Union[None, bool, Dict[str, Any], StorePersistOptions]


def coerce_factory_options(options: Union[None, Dict[str, Any], PersistFactoryOptions]) -> PersistFactoryOptions:
    if options is None:
        return PersistFactoryOptions()
    if isinstance(options, PersistFactoryOptions):
        return options
    try:
        return PersistFactoryOptions.model_validate(options)
    except ValidationError as e:
        raise ConfigurationError("Invalid persist factory options.", errors=e.errors(include_url=False)) from e


def mix_options(store_option: StoreOption, factory: PersistFactoryOptions, state_keys: Iterable[str]) -> Optional[StorePersistOptions]:
    """
    Merge one store's persist option with the factory defaults.

    ``None`` falls back to ``factory.auto``; ``False`` disables the store;
    ``True`` (or options without ``states``) persists every state field with
    default field options. Returns None when the store is not persisted.
    """
    if store_option is None:
        store_option = bool(factory.auto)
    if store_option is False:
        return None
    if store_option is True:
        opts = StorePersistOptions()
    elif isinstance(store_option, StorePersistOptions):
        opts = store_option
    else:
        try:
            opts = StorePersistOptions.model_validate(store_option)
        except ValidationError as e:
            raise ConfigurationError("Invalid store persist options.", errors=e.errors(include_url=False)) from e

    if opts.states:
        raw_states: Dict[str, Any] = dict(opts.states)
    else:
        raw_states = {k: True for k in state_keys}
    states: Dict[str, FieldPersistOptions] = {}
    for state_key, state_opt in raw_states.items():
        if state_opt is True:
            states[str(state_key)] = FieldPersistOptions()
        elif isinstance(state_opt, FieldPersistOptions):
            states[str(state_key)] = state_opt

    return opts.model_copy(
        update={
            "storage": opts.storage if opts.storage is not None else factory.storage,
            "debug": bool(opts.debug) if opts.debug is not None else bool(factory.debug),
            "hash_action_prefix": opts.hash_action_prefix if opts.hash_action_prefix is not None else factory.hash_action_prefix,
            "states": states,
        }
    )


def produce_store_persist_context(
    factory: PersistFactoryOptions,
    store_id: str,
    store_state: Dict[str, Any],
    mixed: StorePersistOptions,
    *,
    logger: Optional[logging.Logger] = None,
) -> StorePersistContext:
    try:
        if callable(mixed.key):
            key = str(mixed.key(store_id))
        elif mixed.key is not None:
            key = str(mixed.key)
        else:
            key = str(store_id)
        if factory.key is not None:
            key = str(factory.key(key))
    except Exception as e:  # noqa: BLE001
        raise ConfigurationError("Store key generator failed.", store_id=store_id, error=str(e)[:300]) from e
    if not key:
        raise ConfigurationError("Store persist key resolved to an empty string.", store_id=store_id)

    debug = bool(mixed.debug)
    backend = mixed.storage if mixed.storage is not None else default_storage()
    storage = _safe_storage(backend, debug=debug, where=f"store '{store_id}'", logger=logger)
    return StorePersistContext(
        store_id=str(store_id),
        key=key,
        debug=debug,
        states=dict(mixed.states),  # type: ignore[arg-type]
        store_state=store_state,
        hash_action_prefix=str(mixed.hash_action_prefix or ""),
        storage=storage,
        before_restore=mixed.before_restore,
        after_restore=mixed.after_restore,
    )


def produce_field_persist_context(
    field_id: str,
    options: FieldPersistOptions,
    store_ctx: StorePersistContext,
    *,
    logger: Optional[logging.Logger] = None,
) -> FieldPersistContext:
    if field_id not in store_ctx.store_state:
        raise ConfigurationError(f"State field '{field_id}' does not exist.", store_id=store_ctx.store_id, field_id=field_id)
    storage = store_ctx.storage
    if options.storage is not None:
        storage = _safe_storage(options.storage, debug=store_ctx.debug, where=f"field '{field_id}'", logger=logger)
    return FieldPersistContext(
        field_id=str(field_id),
        persist_key=field_key(store_ctx.key, field_id),
        hash_action_name=options.hash_action_name or f"{store_ctx.hash_action_prefix}{field_id}",
        policy=options.policy,
        storage=storage,
        serialize=compose_serializer(produce_filter(options.includes, options.excludes), options.serialize),
        deserialize=options.deserialize or default_deserialize,
        deserialize_post_handler=options.deserialize_post_handler or default_post_handler,
        store_context=store_ctx,
    )


def _safe_storage(backend: Any, *, debug: bool, where: str, logger: Optional[logging.Logger] = None) -> SafeStorage:
    if not isinstance(backend, (StorageLike, SafeStorage)):
        raise ConfigurationError(
            f"Storage for {where} must provide get_item, set_item and remove_item.",
            storage=type(backend).__name__,
        )
    return SafeStorage(backend, debug=debug, logger=logger)
