# Overview: Legacy URL aliases served by their canonical views.

from __future__ import annotations

from collections import defaultdict
from typing import Mapping

from werkzeug.exceptions import HTTPException
from werkzeug.routing import RequestRedirect

# alias -> canonical path; both stay reachable
ROUTE_ALIASES: Mapping[str, str] = {
    "/api/pos/issue-invoice": "/api/pos/issueInvoice",
    "/api/pos/save-draft": "/api/pos/saveDraft",
    "/api/settings/settings_company": "/api/settings/company",
}

IGNORED_METHODS = {"HEAD", "OPTIONS"}


class AliasError(RuntimeError):
    """An alias points at a path no view serves, or would hide another route."""


def _match(app, path: str, method: str):
    adapter = app.url_map.bind("")
    try:
        rule, _ = adapter.match(path, method=method, return_rule=True)
    except (HTTPException, RequestRedirect):
        return None
    return rule


def register_aliases(app, aliases: Mapping[str, str] = ROUTE_ALIASES) -> None:
    """
    Bind each alias to every rule of its target, one alias rule per target
    rule so each method keeps its own view.

    Raises AliasError at startup when a target is not a registered rule,
    when the alias is already served by a static rule, or when the alias
    does not resolve to the target's view once added (a more specific
    rule would win).
    """
    rules_by_path = defaultdict(list)
    for rule in app.url_map.iter_rules():
        rules_by_path[rule.rule].append(rule)

    for alias, target in aliases.items():
        targets = rules_by_path.get(target)
        if not targets:
            raise AliasError(f"Alias {alias} points at unregistered route {target}")

        for rule in targets:
            methods = sorted((rule.methods or set()) - IGNORED_METHODS)
            for method in methods:
                existing = _match(app, alias, method)
                # Converter rules such as /<key> may match; the static alias outranks them
                if existing is not None and not existing.arguments:
                    raise AliasError(f"Alias {alias} shadows an existing route")

            app.add_url_rule(
                alias,
                endpoint=f"alias:{alias}:{rule.endpoint}",
                view_func=app.view_functions[rule.endpoint],
                methods=methods,
            )

            for method in methods:
                bound = _match(app, alias, method)
                if bound is None or bound.endpoint != f"alias:{alias}:{rule.endpoint}":
                    raise AliasError(f"Alias {alias} does not resolve to {rule.endpoint} for {method}")
