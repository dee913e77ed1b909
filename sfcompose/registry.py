"""Assembles compiled fragments into a renderable template registry."""

from __future__ import annotations

from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Sequence,
    Tuple,
)

from jinja2 import BaseLoader, Environment, Template, TemplateNotFound
from jinja2 import TemplateSyntaxError as JinjaSyntaxError

from .errors import DuplicateNameError, SectionSyntaxError
from .logging import get_logger
from .models import CompiledFragment


class RegistryLoader(BaseLoader):
    """Serves precompiled component templates to a Jinja environment."""

    def __init__(self, templates: Mapping[str, Template]) -> None:
        self._templates = templates

    def load(
        self,
        environment: Environment,
        name: str,
        globals: Optional[MutableMapping[str, Any]] = None,
    ) -> Template:
        # Templates were compiled against the environment globals up front.
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFound(name) from None

    def get_source(
        self, environment: Environment, template: str
    ) -> Tuple[str, Optional[str], Optional[Callable[[], bool]]]:
        raise TemplateNotFound(template)

    def list_templates(self) -> List[str]:
        return sorted(self._templates)


class Registry:
    """Immutable collection of compiled component templates keyed by canonical name."""

    def __init__(
        self,
        environment: Environment,
        fragments: Mapping[str, CompiledFragment],
        templates: Mapping[str, Template],
        *,
        documents: Sequence[str] = (),
        orders: Optional[Mapping[str, Sequence[str]]] = None,
        scoped_styles: Iterable[str] = (),
    ) -> None:
        self.environment = environment
        self.fragments: Mapping[str, CompiledFragment] = MappingProxyType(dict(fragments))
        self._templates: Mapping[str, Template] = MappingProxyType(dict(templates))
        self.documents: Tuple[str, ...] = tuple(sorted(documents))
        self._orders: Dict[str, Tuple[str, ...]] = {
            name: tuple(order) for name, order in (orders or {}).items()
        }
        self.scoped_styles: FrozenSet[str] = frozenset(scoped_styles)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def names(self) -> List[str]:
        return sorted(self._templates)

    def dependency_order(self, name: str) -> Tuple[str, ...]:
        """Return the sorted dependency closure used to build ``name``'s root."""
        try:
            return self._orders[name]
        except KeyError:
            raise KeyError(f"Unknown component document: {name}") from None

    def get_template(self, name: str) -> Template:
        return self.environment.get_template(name)

    def render(
        self, name: str, data: Optional[Mapping[str, Any]] = None, /, **extra: Any
    ) -> str:
        """Render template ``name`` (usually a page root such as ``./home``).

        Keyword arguments are merged over ``data``, so ``name=`` may be passed as context.
        """
        context: Dict[str, Any] = dict(data or {})
        context.update(extra)
        return self.get_template(name).render(context)


class RegistryAssembler:
    """Collects fragments and roots, then compiles them into a :class:`Registry`."""

    def __init__(self, environment: Environment) -> None:
        self.environment = environment
        self._fragments: Dict[str, CompiledFragment] = {}
        self.logger = get_logger("registry")

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self._fragments)

    @property
    def content_names(self) -> FrozenSet[str]:
        """Names of collected fragments that render something."""
        return frozenset(
            name for name, fragment in self._fragments.items() if not fragment.is_empty
        )

    def add(self, fragment: CompiledFragment) -> None:
        if fragment.name in self._fragments:
            raise DuplicateNameError(fragment.name)
        self._fragments[fragment.name] = fragment

    def extend(self, fragments: Iterable[CompiledFragment]) -> None:
        for fragment in fragments:
            self.add(fragment)

    def build(
        self,
        *,
        documents: Sequence[str] = (),
        orders: Optional[Mapping[str, Sequence[str]]] = None,
        scoped_styles: Iterable[str] = (),
    ) -> Registry:
        """Compile every collected tree and return the finished registry."""
        templates: Dict[str, Template] = {}
        for name in sorted(self._fragments):
            templates[name] = self._compile(self._fragments[name])
        self.environment.loader = RegistryLoader(MappingProxyType(templates))
        self.logger.debug("Compiled %d template(s) into the registry", len(templates))
        return Registry(
            self.environment,
            self._fragments,
            templates,
            documents=documents,
            orders=orders,
            scoped_styles=scoped_styles,
        )

    def _compile(self, fragment: CompiledFragment) -> Template:
        environment = self.environment
        try:
            code = environment.compile(fragment.tree, fragment.name)
        except JinjaSyntaxError as exc:
            raise SectionSyntaxError(
                fragment.document,
                fragment.section or fragment.kind,
                exc.message or str(exc),
                lineno=exc.lineno,
            ) from exc
        return environment.template_class.from_code(
            environment, code, environment.make_globals(None), None
        )


__all__ = ["Registry", "RegistryAssembler", "RegistryLoader"]
