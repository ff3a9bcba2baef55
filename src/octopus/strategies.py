"""Command strategy resolution.

Maps a logical action (``install``, ``build``, ``sdk-update``...) and a
repository descriptor to the ordered list of concrete commands worth trying.

Monorepos declaring a prefix get several candidate shapes, most common
first::

    yarn host install            # prefixed
    yarn host:install            # namespaced-script, only if declared
    yarn workspace host install  # workspace
    yarn install                 # bare
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from octopus.models import CLONE_ACTION, RepositoryDescriptor, Strategy

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_MANAGER = "yarn"
DEFAULT_MANIFEST = "package.json"


def read_manifest_scripts(manifest: Path) -> frozenset[str]:
    """Return the script names declared in a package manifest.

    Missing, unreadable or malformed manifests declare no scripts.
    """
    if not manifest.is_file():
        return frozenset()
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read scripts from %s: %s", manifest, exc)
        return frozenset()
    scripts = data.get("scripts") if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return frozenset()
    return frozenset(str(name) for name in scripts)


@dataclass(frozen=True)
class _StrategyContext:
    tool: str
    action: str
    prefix: str
    scripts: Callable[[], frozenset[str]]


def _prefixed(ctx: _StrategyContext) -> Strategy | None:
    return Strategy("prefixed", (ctx.tool, ctx.prefix, ctx.action))


def _namespaced_script(ctx: _StrategyContext) -> Strategy | None:
    script = f"{ctx.prefix}:{ctx.action}"
    if script not in ctx.scripts():
        return None
    return Strategy("namespaced-script", (ctx.tool, script))


def _workspace(ctx: _StrategyContext) -> Strategy | None:
    return Strategy("workspace", (ctx.tool, "workspace", ctx.prefix, ctx.action))


def _bare(ctx: _StrategyContext) -> Strategy | None:
    return Strategy("bare", (ctx.tool, ctx.action))


# Priority order for descriptors with a monorepo prefix. A builder returning
# None is skipped without being attempted.
MONOREPO_STRATEGIES: tuple[Callable[[_StrategyContext], Strategy | None], ...] = (
    _prefixed,
    _namespaced_script,
    _workspace,
    _bare,
)


class StrategyResolver:
    """Produces candidate commands for (action, descriptor) pairs.

    Resolution is pure apart from the manifest lookup for namespaced scripts,
    which is a read-only file access.
    """

    def __init__(
        self,
        package_manager: str = DEFAULT_PACKAGE_MANAGER,
        manifest_name: str = DEFAULT_MANIFEST,
        git: str = "git",
    ) -> None:
        self.package_manager = package_manager
        self.manifest_name = manifest_name
        self.git = git

    def strategies_for(self, action: str, descriptor: RepositoryDescriptor) -> list[Strategy]:
        if action == CLONE_ACTION:
            return self._clone_strategies(descriptor)

        if not descriptor.monorepo_prefix:
            return [Strategy("plain", (self.package_manager, action))]

        manifest = Path(descriptor.working_directory) / self.manifest_name
        ctx = _StrategyContext(
            tool=self.package_manager,
            action=action,
            prefix=descriptor.monorepo_prefix,
            scripts=lambda: read_manifest_scripts(manifest),
        )
        strategies = []
        for build in MONOREPO_STRATEGIES:
            strategy = build(ctx)
            if strategy is not None:
                strategies.append(strategy)
        return strategies

    def _clone_strategies(self, descriptor: RepositoryDescriptor) -> list[Strategy]:
        if not descriptor.url:
            return []
        target = Path(descriptor.working_directory)
        return [
            Strategy(
                "git-clone",
                (self.git, "clone", descriptor.url, str(target)),
                cwd=target.parent,
            )
        ]
