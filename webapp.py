from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Optional

from flask import Flask, flash, jsonify, redirect, render_template, request, url_for

from graph_snippets.audit import InMemoryAuditStore, JsonAuditLogger
from graph_snippets.config import SnippetAppConfig
from graph_snippets.errors import NotFoundError
from graph_snippets.invoker import SnippetOutcome
from graph_snippets.runner import SnippetRunner


def create_app(
    config_path: str | os.PathLike[str] = "config/snippets.yaml",
    runner: Optional[SnippetRunner] = None,
) -> Flask:
    audit_store = InMemoryAuditStore()
    if runner is None:
        config = SnippetAppConfig.load(Path(config_path))
        runner = SnippetRunner(config, audit_logger=JsonAuditLogger(store=audit_store))
    elif runner.audit.store is not None:
        audit_store = runner.audit.store

    app = Flask(__name__)
    app.secret_key = os.getenv("FLASK_SECRET_KEY", "replace-this-secret")
    app.config["SNIPPET_RUNNER"] = runner
    app.config["AUDIT_STORE"] = audit_store

    def _catalog():
        return [
            (category, runner.descriptors_for(category))
            for category in runner.registry.categories()
        ]

    @app.route("/")
    def index() -> str:
        return render_template("index.html", catalog=_catalog())

    @app.post("/run")
    def run():
        snippet_id = request.form.get("snippet_id")
        correlation_id = str(uuid.uuid4())
        outcome: Optional[SnippetOutcome] = None

        if not snippet_id:
            flash("A snippet is required", "danger")
            return redirect(url_for("index"))

        try:
            descriptor = runner.registry.get(snippet_id)
        except NotFoundError as exc:
            flash(str(exc), "danger")
            return redirect(url_for("index"))

        [outcome] = runner.run_sync([descriptor.id], correlation_id=correlation_id)
        if not outcome.succeeded:
            flash(f"Snippet failed: {outcome.error.kind}: {outcome.error.message}", "danger")

        return render_template(
            "index.html",
            catalog=_catalog(),
            descriptor=descriptor,
            outcome=outcome.to_dict(),
            correlation_id=correlation_id,
        )

    @app.get("/audit")
    def audit() -> str:
        limit = _limit_param()
        events = audit_store.list(limit=limit)
        return render_template("audit.html", events=events, limit=limit)

    @app.get("/audit.json")
    def audit_json():
        events = audit_store.list(limit=_limit_param())
        payload = [event.to_dict() for event in events]
        return jsonify({"events": payload, "count": len(payload)})

    return app


def _limit_param() -> int:
    limit_param = request.args.get("limit")
    try:
        return int(limit_param) if limit_param else 100
    except ValueError:
        return 100


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)), debug=True)
