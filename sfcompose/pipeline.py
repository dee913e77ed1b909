"""Directory compilation pipeline: scan, split, resolve, order, assemble."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Collection, Iterator, List, Mapping, Optional, Sequence

from .compiler import TopologicalCompiler
from .config import ComposeConfig, load_config
from .extensions import build_environment
from .graph import DependencyGraph
from .logging import get_logger
from .models import ResolvedDocument, SourceDocument, local_name
from .registry import Registry, RegistryAssembler
from .resolver import ReferenceResolver
from .scanner import ComponentScanner
from .splitter import split_file

FunctionTable = Mapping[str, Callable[..., Any]]


class ComponentCompiler:
    """Compiles a directory of single-file components into a :class:`Registry`."""

    def __init__(
        self,
        config: ComposeConfig | None = None,
        scanner: ComponentScanner | None = None,
    ) -> None:
        self.config = config
        self.scanner = scanner
        self.logger = get_logger("pipeline")

    def compile(
        self,
        root: str | Path,
        functions: Optional[FunctionTable] = None,
        *,
        filters: Optional[FunctionTable] = None,
    ) -> Registry:
        """Walk ``root`` and return the composed registry."""
        root_path = Path(root).expanduser()
        config = self.config or self._load_config(root_path)
        scanner = self.scanner or ComponentScanner(config.extension, config.exclude_paths)

        self.logger.info("Compiling components under %s", root_path)
        documents = scanner.scan(root_path)
        self.logger.debug("Scanner discovered %d component(s)", len(documents))

        environment = build_environment(config.environment, functions, filters)
        resolver = ReferenceResolver(environment)
        graph = DependencyGraph()
        assembler = RegistryAssembler(environment)
        scoped: List[str] = []

        for resolved in self._resolve_all(documents, resolver, config.workers):
            name = resolved.document.canonical_name
            graph.add_document(name, resolved.dependencies)
            assembler.extend(resolved.fragments)
            if resolved.scoped:
                scoped.append(name)
            self._check_local_references(resolved, assembler.names)
        graph.freeze()

        known = {document.canonical_name for document in documents}
        for missing in sorted(graph.targets() - known):
            self.logger.warning("Referenced component %s has no source file", missing)

        compiler = TopologicalCompiler(
            environment, graph, assembler.content_names, doctype=config.page.doctype
        )
        assembler.extend(compiler.compile_all(sorted(known)))

        registry = assembler.build(
            documents=sorted(known),
            orders=compiler.orders,
            scoped_styles=scoped,
        )
        self.logger.info(
            "Compiled %d component(s) into %d template(s)", len(documents), len(registry)
        )
        return registry

    def _load_config(self, root: Path) -> ComposeConfig:
        if not root.is_dir():
            # Let the scanner report missing roots with its own message.
            return ComposeConfig(root=root)
        return load_config(root)

    def _resolve_all(
        self,
        documents: Sequence[SourceDocument],
        resolver: ReferenceResolver,
        workers: int,
    ) -> Iterator[ResolvedDocument]:
        def resolve(document: SourceDocument) -> ResolvedDocument:
            sections = split_file(document.path, source=document.relative_path)
            return resolver.resolve(document, sections)

        if workers <= 1 or len(documents) <= 1:
            for document in documents:
                yield resolve(document)
            return

        # map() yields in submission order, so merging stays deterministic.
        with ThreadPoolExecutor(max_workers=workers) as executor:
            yield from executor.map(resolve, documents)

    def _check_local_references(self, resolved: ResolvedDocument, registered: Collection[str]) -> None:
        name = resolved.document.canonical_name
        for reference in sorted(resolved.local_references):
            if local_name(name, reference) not in registered:
                self.logger.warning(
                    "%s includes %r but defines no sub-template by that name",
                    resolved.document.relative_path,
                    reference,
                )


def compile_directory(
    root: str | Path,
    functions: Optional[FunctionTable] = None,
    *,
    config: ComposeConfig | None = None,
    filters: Optional[FunctionTable] = None,
) -> Registry:
    """Compile every component under ``root`` into one template registry.

    Render a page with ``registry.render("./path/to/page", data)``.
    """
    return ComponentCompiler(config=config).compile(root, functions, filters=filters)


__all__ = ["ComponentCompiler", "FunctionTable", "compile_directory"]
