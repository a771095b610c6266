from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from graph_snippets.audit import JsonAuditLogger
from graph_snippets.config import SnippetAppConfig
from graph_snippets.registry import default_registry
from graph_snippets.runner import SnippetRunner
from graph_snippets.snippets import SnippetCategory


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run Microsoft Graph snippets for the signed-in user")
    parser.add_argument("--config", required=True, help="Path to snippet configuration YAML")
    parser.add_argument(
        "--category",
        default=SnippetCategory.ME.value,
        choices=[category.value for category in SnippetCategory],
        help="Snippet category",
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--list", action="store_true", help="List the snippets of the category")
    group.add_argument(
        "--snippet",
        action="append",
        dest="snippets",
        help="Snippet id to run (repeat to run several concurrently)",
    )
    group.add_argument("--all", action="store_true", help="Run every snippet of the category")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    registry = default_registry()
    descriptors = registry.list_by_category(SnippetCategory(args.category))

    if args.list:
        listing = [
            {"id": d.id, "label": d.label, "request": d.http_request, "docs": d.docs_url}
            for d in descriptors
        ]
        print(json.dumps(listing, indent=2))
        return 0

    config = SnippetAppConfig.load(Path(args.config))
    runner = SnippetRunner(config, registry=registry, audit_logger=JsonAuditLogger())
    snippet_ids = [d.id for d in descriptors] if args.all else args.snippets
    outcomes = runner.run_sync(snippet_ids)

    print(json.dumps([outcome.to_dict() for outcome in outcomes], indent=2))
    return 0 if all(outcome.succeeded for outcome in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
