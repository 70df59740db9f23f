"""CLI for maintaining the LawSphere template catalog."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Sequence

from lawsphere.catalog.loader import LoaderConfig, TemplateFileLoader, TemplateImportError
from lawsphere.config import Settings, get_settings
from lawsphere.errors import LawSphereError, TemplateAmbiguous, TemplateNotFound
from lawsphere.services.resolver import ResolverConfig, TemplateResolver
from lawsphere.storage import ChromaTemplateCatalog, build_client


def open_catalog(settings: Settings) -> ChromaTemplateCatalog:
    return ChromaTemplateCatalog(
        settings.templates_collection,
        client=build_client(settings),
        extensions=settings.template_extensions_tuple,
        page_size=settings.store_page_size,
    )


def _expand(paths: Sequence[Path]) -> List[Path]:
    supported = set(TemplateFileLoader.supported_extensions())
    expanded: List[Path] = []
    for path in paths:
        if path.is_dir():
            expanded.extend(sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in supported))
        else:
            expanded.append(path)
    return expanded


def run_import(catalog: ChromaTemplateCatalog, paths: Sequence[Path], *, strip_extension: bool = False) -> int:
    loader = TemplateFileLoader(catalog, LoaderConfig(keep_extension_in_title=not strip_extension))
    files = _expand(paths)
    if not files:
        print("No template files found.", file=sys.stderr)
        return 1
    try:
        templates = loader.load(files)
    except TemplateImportError as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    for template in templates:
        print(f"{template.template_id}\t{template.title}\t{template.normalized_title}")
    return 0


def run_list(catalog: ChromaTemplateCatalog, *, as_json: bool = False) -> int:
    templates = list(catalog.iter_templates(with_body=False))
    if as_json:
        payload = [
            {"id": t.template_id, "title": t.title, "normalized_title": t.normalized_title, "position": t.position}
            for t in templates
        ]
        print(json.dumps(payload, indent=2))
        return 0
    for template in sorted(templates, key=lambda t: (t.position, t.template_id)):
        print(f"{template.position}\t{template.title}\t{template.normalized_title}")
    return 0


def run_resolve(catalog: ChromaTemplateCatalog, settings: Settings, title: str) -> int:
    resolver = TemplateResolver(
        catalog,
        ResolverConfig(
            extensions=settings.template_extensions_tuple,
            default_extension=settings.default_template_extension,
            ambiguous_policy=settings.ambiguous_template_policy,
            diagnostic_title_limit=settings.diagnostic_title_limit,
        ),
    )
    try:
        template = resolver.resolve(title)
    except TemplateNotFound as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except TemplateAmbiguous as exc:
        print(str(exc), file=sys.stderr)
        return 3
    except LawSphereError as exc:
        print(f"Resolution failed: {exc}", file=sys.stderr)
        return 1
    print(f"{template.template_id}\t{template.title}\t{template.normalized_title}")
    return 0


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the LawSphere template catalog.")
    commands = parser.add_subparsers(dest="command", required=True)

    importer = commands.add_parser("import", help="Add template files (or directories of them) to the catalog")
    importer.add_argument("paths", nargs="+", type=Path, help="Template files or directories")
    importer.add_argument(
        "--strip-extension",
        action="store_true",
        help="Store titles without the file extension",
    )

    lister = commands.add_parser("list", help="List catalog templates in catalog order")
    lister.add_argument("--json", action="store_true", help="Print JSON instead of tab-separated rows")

    resolver = commands.add_parser("resolve", help="Show which template a requested title resolves to")
    resolver.add_argument("title", help="Requested document title")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = get_settings()
    catalog = open_catalog(settings)
    if args.command == "import":
        return run_import(catalog, args.paths, strip_extension=args.strip_extension)
    if args.command == "list":
        return run_list(catalog, as_json=args.json)
    return run_resolve(catalog, settings, args.title)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
