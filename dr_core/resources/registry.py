# dr_core/resources/registry.py
from __future__ import annotations

from typing import Optional

import structlog
from django.apps import apps
from django.conf import settings
from django.utils.module_loading import import_string

from dr_core.resources import compiler
from dr_core.resources.exceptions import InvalidRegistration, UnknownResource

logger = structlog.get_logger(__name__)


class ResourceRegistry:
    """
    slug -> model mapping.

    Filled once at startup (``ResourcesConfig.ready``) and read-only after
    that; ``clear`` exists for tests. Registering a slug again replaces the
    previous model.
    """

    def __init__(self):
        self._models: dict[str, type] = {}

    def register(self, model) -> str:
        if not compiler.declares_structure(model):
            raise InvalidRegistration(f"{model.__name__} does not declare an api_structure().")

        slug = compiler.compile(model).slug
        previous = self._models.get(slug)
        if previous is not None and previous is not model:
            logger.warning(
                "resource_registry.replaced",
                slug=slug,
                previous=previous.__name__,
                model=model.__name__,
            )
        self._models[slug] = model
        return slug

    def get(self, slug: str) -> Optional[type]:
        return self._models.get(slug)

    def has(self, slug: str) -> bool:
        return slug in self._models

    def resolve(self, slug: str):
        model = self._models.get(slug)
        if model is None:
            raise UnknownResource(slug)
        return model

    def all(self) -> dict[str, type]:
        return dict(self._models)

    def slugs(self) -> list[str]:
        return list(self._models)

    def slug_for(self, model) -> Optional[str]:
        for slug, registered in self._models.items():
            if registered is model:
                return slug
        return None

    def clear(self) -> None:
        self._models.clear()

    def autodiscover(self) -> list[str]:
        """
        Register every installed concrete model that declares a structure,
        plus anything listed in ``settings.RESOURCE_MODELS``.
        """
        found = []
        for model in apps.get_models():
            if model._meta.abstract or not compiler.declares_structure(model):
                continue
            found.append(self.register(model))

        for dotted in getattr(settings, "RESOURCE_MODELS", []) or []:
            model = apps.get_model(dotted) if dotted.count(".") == 1 else import_string(dotted)
            found.append(self.register(model))

        logger.info("resource_registry.discovered", count=len(found), slugs=sorted(set(found)))
        return found


registry = ResourceRegistry()
