from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from cnpersist.core.errors import ConfigurationError
from cnpersist.core.logger import get_logger
from cnpersist.core.persist.buffer import PersistBuffer
from cnpersist.core.persist.context import (
    coerce_factory_options,
    mix_options,
    produce_field_persist_context,
    produce_store_persist_context,
)
from cnpersist.core.persist.models import (
    EventPolicy,
    FieldPersistContext,
    PersistFactoryOptions,
    PersistPolicy,
    StorePersistContext,
)
from cnpersist.core.persist.producers import (
    ListenerPersist,
    StateLevelPersist,
    produce_action_listener,
    produce_hash_level_persist,
    produce_state_level_persist,
    produce_store_persist,
)
from cnpersist.core.persist.restore import hydrate_store, persist_initial_value, restore_from_stored
from cnpersist.core.persist.scheduler import TimerFactory
from cnpersist.store.registry import PluginContext


@dataclass
class StoreBinding:
    """What the plugin attached to one store."""

    context: PluginContext
    store_context: StorePersistContext
    fields: Dict[str, FieldPersistContext]
    buffer: PersistBuffer
    persist: Callable[[], int]
    disposers: List[Callable[[], None]] = field(default_factory=list)
    logger: Optional[logging.Logger] = None

    def hydrate(self) -> int:
        return hydrate_store(
            list(self.fields.values()),
            self.buffer,
            before_restore=self.store_context.before_restore,
            after_restore=self.store_context.after_restore,
            hook_arg=self.context,
            logger=self.logger,
        )

    def dispose(self) -> None:
        for d in self.disposers:
            d()
        self.disposers = []


class PersistPlugin:
    """
    Store plugin persisting configured state fields.

    One instance owns one PersistBuffer; every store it is attached to shares
    that buffer and its debounce timer.
    """

    def __init__(
        self,
        factory_options: Union[None, Dict[str, Any], PersistFactoryOptions] = None,
        *,
        buffer: Optional[PersistBuffer] = None,
        timer_factory: Optional[TimerFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = get_logger(logger)
        self.options = coerce_factory_options(factory_options)
        if buffer is None:
            buffer = PersistBuffer(global_debounce_ms=self.options.global_debounce_ms, timer_factory=timer_factory, logger=self.logger)
        else:
            buffer.set_global_debounce(self.options.global_debounce_ms)
        self.buffer = buffer
        self.bindings: Dict[str, StoreBinding] = {}

    def set_global_debounce(self, global_debounce_ms: int) -> None:
        self.buffer.set_global_debounce(global_debounce_ms)

    def flush_now(self) -> int:
        return self.buffer.flush_now()

    def close(self) -> int:
        for binding in list(self.bindings.values()):
            binding.dispose()
        return self.buffer.close()

    def __call__(self, context: PluginContext) -> Optional[StoreBinding]:
        store = context.store
        try:
            mixed = mix_options(context.persist_options, self.options, list(store.state.keys()))
            if mixed is None:
                return None
            store_ctx = produce_store_persist_context(self.options, store.id, store.state, mixed, logger=self.logger)
        except ConfigurationError as e:
            # one misconfigured store must not stop the others
            self.logger.error("Persistence disabled for store '%s': %s", store.id, e)
            return None

        fields: Dict[str, FieldPersistContext] = {}
        state_level: Dict[str, StateLevelPersist] = {}
        action_persisters: Dict[str, ListenerPersist] = {}
        disposers: List[Callable[[], None]] = []
        init_restore: List[Tuple[FieldPersistContext, str]] = []

        for field_id, field_options in store_ctx.states.items():
            try:
                ctx = produce_field_persist_context(field_id, field_options, store_ctx, logger=self.logger)
                if ctx.policy == PersistPolicy.HASH:
                    if not store.has_action(ctx.hash_action_name):
                        raise ConfigurationError(
                            f"State field '{field_id}' uses the HASH policy and needs an action named '{ctx.hash_action_name}'.",
                            store_id=store.id,
                            field_id=field_id,
                        )
                    # entry writes come through the action, replacements through the watcher
                    action_persisters[ctx.hash_action_name] = produce_hash_level_persist(ctx, self.buffer, logger=self.logger)
                    persist = produce_state_level_persist(EventPolicy.HASH_RESET, ctx, self.buffer)
                    disposers.append(store.watch(field_id, persist))
                else:
                    persist = produce_state_level_persist(EventPolicy.STRING, ctx, self.buffer)
                    disposers.append(store.watch(field_id, persist, deep=True))
            except ConfigurationError as e:
                self.logger.error("Field '%s' of store '%s' will not be persisted: %s", field_id, store.id, e)
                continue

            fields[field_id] = ctx
            state_level[field_id] = persist

            stored = ctx.storage.get_item(ctx.persist_key)
            if stored:
                init_restore.append((ctx, stored))
            else:
                persist_initial_value(ctx, self.buffer)

        if action_persisters:
            disposers.append(store.on_action(produce_action_listener(action_persisters)))

        binding = StoreBinding(
            context=context,
            store_context=store_ctx,
            fields=fields,
            buffer=self.buffer,
            persist=produce_store_persist(state_level, store.state, self.buffer),
            disposers=disposers,
            logger=self.logger,
        )
        store.install_persistence(persist=binding.persist, hydrate=binding.hydrate)
        self.bindings[store.id] = binding

        # stored data wins over initial state values
        if init_restore:
            if store_ctx.before_restore is not None:
                store_ctx.before_restore(context)
            for ctx, stored in init_restore:
                restore_from_stored(stored, ctx, logger=self.logger)
            if store_ctx.after_restore is not None:
                store_ctx.after_restore(context)

        self.logger.debug(
            "Store '%s' persisted under key '%s': %d field(s), %d restored",
            store.id,
            store_ctx.key,
            len(fields),
            len(init_restore),
        )
        return binding


def create_persist_plugin(
    factory_options: Union[None, Dict[str, Any], PersistFactoryOptions] = None,
    *,
    timer_factory: Optional[TimerFactory] = None,
    logger: Optional[logging.Logger] = None,
) -> PersistPlugin:
    return PersistPlugin(factory_options, timer_factory=timer_factory, logger=logger)
