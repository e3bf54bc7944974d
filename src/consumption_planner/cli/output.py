"""Shared document loading and result output for CLI commands"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import click
import yaml
from rich.console import Console
from rich.table import Table

from ..core.exceptions import ConsumptionPlannerError
from ..core.models import PurchaseStrategy
from ..core.validation import RequestT, Validator, parse_request


def load_request(path: Path, model: Type[RequestT]) -> RequestT:
    """Load a YAML or JSON document and validate it, reporting problems as usage errors"""
    try:
        return parse_request(model, Validator.load_document(path))
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e


def emit(console: Console, data: Dict[str, Any], format: str, output: Optional[str]) -> None:
    """Write a result document as JSON or YAML to a file or the console"""
    if format == 'yaml':
        text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    else:
        text = json.dumps(data, indent=2)

    if output:
        Path(output).write_text(text)
        console.print(f"\n✓ Results saved to [green]{output}[/green]")
    elif format == 'json':
        console.print_json(text)
    else:
        console.print(text, markup=False, highlight=False)


def strategies_table(strategies: List[PurchaseStrategy], title: str = "Recommended Purchases") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Purchase", style="cyan")
    table.add_column("Instance", style="white")
    table.add_column("Qty", justify="right")
    table.add_column("Term", justify="center")
    table.add_column("Hourly", justify="right")
    table.add_column("Monthly", justify="right", style="yellow")
    table.add_column("Risk", justify="center")
    table.add_column("Purpose", style="dim")

    risk_colors = {'low': 'green', 'medium': 'yellow', 'high': 'red'}
    for strategy in strategies:
        term = strategy.commitment.value if strategy.commitment else "-"
        if strategy.payment_option:
            term = f"{term} {strategy.payment_option.value}"
        color = risk_colors[strategy.risk_level.value]
        table.add_row(
            strategy.purchase_type.value,
            strategy.instance_type,
            str(strategy.quantity),
            term,
            f"${strategy.hourly_cost:.4f}",
            f"${strategy.monthly_cost:,.2f}",
            f"[{color}]{strategy.risk_level.value}[/{color}]",
            strategy.purpose,
        )

    return table
