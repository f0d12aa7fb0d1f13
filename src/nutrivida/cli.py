"""CLI entry point for nutrivida."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

logger = logging.getLogger("nutrivida.cli")

CULTURE_CHOICES = [
    "latino",
    "somali",
    "south_asian",
    "mediterranean",
    "caribbean",
    "middle_eastern",
]
GOAL_CHOICES = [
    "blood_sugar_control",
    "weight_loss",
    "energy_boost",
    "glp1_support",
    "general_health",
]


def load_settings(args: argparse.Namespace) -> dict:
    from nutrivida.config import apply_cli_overrides, load_config

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path)
    return apply_cli_overrides(
        config,
        model=getattr(args, "model", None),
        timeout=getattr(args, "timeout", None),
        days=getattr(args, "days", None),
        culture=getattr(args, "culture", None),
        goal=getattr(args, "goal", None),
        skill=getattr(args, "skill", None),
        time=getattr(args, "time", None),
        budget=getattr(args, "budget", None),
        family_size=getattr(args, "family_size", None),
        restrictions=getattr(args, "restriction", None),
        allergies=getattr(args, "allergy", None),
    )


def cmd_plan(args: argparse.Namespace) -> None:
    from nutrivida.service import run_plan

    run_plan(
        config=load_settings(args),
        start_date=args.start_date,
        output_format=args.format,
        recipes=args.recipes,
        shopping_list=args.shopping_list,
        save_plan=args.save_plan,
        offline=args.offline,
        pantry=args.pantry,
    )


def cmd_regenerate(args: argparse.Namespace) -> None:
    from nutrivida.service import run_regenerate

    run_regenerate(
        config=load_settings(args),
        plan_file=args.plan_file,
        day=args.day,
        meal=args.meal,
        output_format=args.format,
        save_plan=args.save_plan,
        offline=args.offline,
    )


def cmd_shopping_list(args: argparse.Namespace) -> None:
    from nutrivida.shopping import run_shopping_list

    run_shopping_list(
        plan_file=args.plan_file,
        pantry=args.pantry,
        output_format=args.format,
    )


def cmd_profile(args: argparse.Namespace) -> None:
    from nutrivida.knowledge import run_profile

    run_profile(culture=args.culture, goal=args.goal, output_format=args.format)


def _add_profile_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--culture", type=str, choices=CULTURE_CHOICES, help="Cultural background")
    p.add_argument("--goal", type=str, choices=GOAL_CHOICES, help="Primary health goal")
    p.add_argument(
        "--restriction",
        action="append",
        default=[],
        help="Dietary restriction (e.g. vegetarian, halal). Repeatable.",
    )
    p.add_argument(
        "--allergy", action="append", default=[], help="Food allergy. Repeatable."
    )
    p.add_argument(
        "--skill", type=str, choices=["beginner", "intermediate", "advanced", "expert"]
    )
    p.add_argument("--time", type=str, choices=["minimal", "moderate", "flexible"])
    p.add_argument("--budget", type=str, choices=["low", "moderate", "high"])
    p.add_argument("--family-size", type=int)
    p.add_argument("--model", type=str, help="Completion model name")
    p.add_argument("--timeout", type=float, help="Provider timeout in seconds")
    p.add_argument(
        "--offline",
        action="store_true",
        help="Skip the completion provider and use the built-in food guide",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nutrivida",
        description="Culturally themed meal plans with AI generation and offline fallback",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML settings (default: ~/.config/nutrivida/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging verbosity (default: info)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # plan
    p_plan = sub.add_parser("plan", help="Generate a meal plan")
    _add_profile_args(p_plan)
    p_plan.add_argument("--days", type=int, help="Plan length in days (default: 7)")
    p_plan.add_argument("--start-date", type=str, help="YYYY-MM-DD; dates each day")
    p_plan.add_argument(
        "--recipes",
        action="store_true",
        help="Include full recipes with ingredients and instructions",
    )
    p_plan.add_argument(
        "--shopping-list",
        action="store_true",
        help="Append a shopping list to the plan output",
    )
    p_plan.add_argument(
        "--pantry", type=str, help="Comma-separated items to leave off the shopping list"
    )
    p_plan.add_argument(
        "--save-plan",
        nargs="?",
        const="auto",
        default=None,
        help="Save plan JSON to file. Optional path; defaults to meal-plan-YYYY-MM-DD.json",
    )
    p_plan.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_plan.set_defaults(func=cmd_plan)

    # regenerate
    p_regen = sub.add_parser("regenerate", help="Replace one meal in a saved plan")
    _add_profile_args(p_regen)
    p_regen.add_argument("--plan-file", type=str, help="Path to plan JSON (or stdin)")
    p_regen.add_argument("--day", type=int, required=True, help="1-indexed day")
    p_regen.add_argument(
        "--meal",
        type=str,
        required=True,
        choices=["breakfast", "lunch", "dinner", "snack"],
    )
    p_regen.add_argument(
        "--save-plan",
        type=str,
        default=None,
        help="Write the plan with the replacement spliced in to this path",
    )
    p_regen.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_regen.set_defaults(func=cmd_regenerate)

    # shopping-list
    p_shop = sub.add_parser("shopping-list", help="Derive a shopping list from a plan")
    p_shop.add_argument("--plan-file", type=str, help="Path to plan JSON (or stdin)")
    p_shop.add_argument(
        "--pantry", type=str, help="Comma-separated pantry items to subtract"
    )
    p_shop.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_shop.set_defaults(func=cmd_shopping_list)

    # profile
    p_prof = sub.add_parser("profile", help="Show cultural and health goal guidance")
    p_prof.add_argument("--culture", type=str, help="Culture id (unknown ids use the default)")
    p_prof.add_argument("--goal", type=str, help="Health goal id")
    p_prof.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_prof.set_defaults(func=cmd_profile)

    return parser


def main() -> None:
    from nutrivida.errors import NutriVidaError
    from nutrivida.knowledge import validate_knowledge_base
    from nutrivida.log import setup_logging

    parser = build_parser()
    args = parser.parse_args()

    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(level=args.log_level, log_file=log_file)

    try:
        validate_knowledge_base()
        args.func(args)
    except NutriVidaError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
