"""Command groups for the ``fa`` CLI.

  fa node        Add, update and delete hierarchy nodes
  fa attributes  Workstation data attributes (parameter limits)
  fa config      Platform API and layout settings
"""

from __future__ import annotations

import typer

# ── Node editing group ───────────────────────────────────────
node_grp = typer.Typer(
    help="🏗️  Nodes: add, update and delete hierarchy nodes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Data attributes group ────────────────────────────────────
attributes_grp = typer.Typer(
    help="📐 Attributes: map workstation parameters and limits.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration: platform API and graph layout.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
