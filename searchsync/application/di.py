from typing import AsyncIterable, NewType

from dishka import AsyncContainer, Provider, Scope, from_context, make_async_container, provide

from searchsync.application.plugin import SearchPlugin
from searchsync.config import Config
from searchsync.domain.index.port import MapperFactory, TypeDiscovery
from searchsync.infrastructure.persistence.discovery import DeclarativeDiscovery
from searchsync.infrastructure.persistence.mapper_factory import DeclarativeMapperFactory

# The host's SQLAlchemy declarative base, supplied as container context.
ModelBase = NewType("ModelBase", type)


class SearchSyncProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)
    model_base = from_context(provides=ModelBase, scope=Scope.APP)

    @provide(scope=Scope.APP)
    def get_discovery(self, base: ModelBase, config: Config) -> TypeDiscovery:
        return DeclarativeDiscovery(base, config.discovery)

    @provide(scope=Scope.APP)
    def get_mapper_factory(self) -> MapperFactory:
        return DeclarativeMapperFactory()

    @provide(scope=Scope.APP)
    async def get_plugin(
        self,
        config: Config,
        base: ModelBase,
        discovery: TypeDiscovery,
        mapper_factory: MapperFactory,
    ) -> AsyncIterable[SearchPlugin]:
        plugin = SearchPlugin(config, discovery, mapper_factory, model_base=base)
        await plugin.start()
        yield plugin
        await plugin.stop()


def create_container(base: type, config: Config | None = None) -> AsyncContainer:
    config = config or Config()

    return make_async_container(
        SearchSyncProvider(),
        context={Config: config, ModelBase: base},
    )
