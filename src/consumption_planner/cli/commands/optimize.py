import click
from pathlib import Path
from rich.panel import Panel
from rich.table import Table

from ...analysis.optimizer import CostOptimizer
from ...core.exceptions import ConsumptionPlannerError
from ...core.validation import PlanRequest
from ..output import emit, load_request, strategies_table


@click.command()
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--max-alternatives', type=int, help='Number of alternative scenarios to report')
@click.option('--output', '-o', type=click.Path(), help='Output file for optimization results')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def optimize(ctx, request_file, max_alternatives, output, format):
    """
    Choose the cheapest acceptable purchase mix for a set of workloads

    Examples:
        consumption-planner optimize workloads.yaml
        consumption-planner optimize workloads.yaml -f json -o result.json
    """
    console = ctx.obj['console']
    request = load_request(request_file, PlanRequest)

    try:
        result = CostOptimizer(max_alternatives=max_alternatives).optimize(
            request.workload_patterns(),
            request.optimization_constraints(),
            request.discount_profile(),
        )
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e

    if format != 'table':
        emit(console, result.to_dict(), format, output)
        return

    console.print(f"\n[bold]Optimization[/bold] [dim]{result.id}[/dim]")
    console.print(strategies_table(result.optimal_strategy, title=f"Optimal Scenario: {result.optimal_scenario}"))

    if result.scenario_scores:
        scores = Table(title="Scenario Scores", show_header=True, header_style="bold blue")
        scores.add_column("Scenario", style="cyan")
        for column in ("Cost", "Risk", "Flexibility", "Reliability", "Specialization", "Bonus", "Total"):
            scores.add_column(column, justify="right")
        for score in sorted(result.scenario_scores, key=lambda s: s.total, reverse=True):
            scores.add_row(
                score.scenario,
                f"{score.cost:.1f}", f"{score.risk:.1f}", f"{score.flexibility:.1f}",
                f"{score.reliability:.1f}", f"{score.specialization:.1f}", f"{score.bonus:.1f}",
                f"[bold]{score.total:.1f}[/bold]",
            )
        console.print(scores)

    savings = result.cost_savings
    risk = result.risk_assessment
    summary_text = f"""[bold green]Optimization Complete![/bold green]

Baseline (all on-demand): [bold]${savings.baseline_monthly_cost:,.2f}/month[/bold]
Optimized: [bold]${savings.optimized_monthly_cost:,.2f}/month[/bold]
Monthly Savings: [bold yellow]${savings.monthly:,.2f}[/bold yellow] ({savings.percentage:.1f}%)
Annual Savings: [bold yellow]${savings.annual:,.2f}[/bold yellow]

Overall Risk: [cyan]{risk.overall_risk.value}[/cyan]
Spot Capacity: [cyan]{risk.spot_capacity_percentage:.1f}%[/cyan]
Confidence: [cyan]{result.confidence_level:.0f}%[/cyan]"""

    console.print("\n")
    console.print(Panel(summary_text, title="Optimization Summary", border_style="green"))

    if result.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for recommendation in result.recommendations:
            console.print(f"  • {recommendation}")

    if output:
        emit(console, result.to_dict(), 'json', output)
