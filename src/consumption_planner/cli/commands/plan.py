import click
from pathlib import Path
from rich.panel import Panel
from rich.table import Table

from ...budget.alignment import BudgetAlignmentAssessor
from ...budget.ledger import BudgetPeriodLedger
from ...core.exceptions import ConsumptionPlannerError
from ...core.orchestrator.planner import ConsumptionPlanOrchestrator
from ...core.validation import ForecastRequest, PlanRequest
from ..output import emit, load_request, strategies_table
from .budget import grant_from_spec


@click.command()
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--horizon', type=click.Choice(['1yr', '3yr']),
              help='Planning horizon (overrides the request document)')
@click.option('--name', help='Plan name')
@click.option('--grant-file', '-g', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Grant document to check the plan against')
@click.option('--output', '-o', type=click.Path(), help='Output file for the plan')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def plan(ctx, request_file, horizon, name, grant_file, output, format):
    """
    Generate a consumption plan with cost breakdown, risks and insights

    Examples:
        consumption-planner plan workloads.yaml --horizon 3yr
        consumption-planner plan workloads.yaml -g grant.yaml -f json
    """
    console = ctx.obj['console']
    request = load_request(request_file, PlanRequest)
    grant_request = load_request(grant_file, ForecastRequest) if grant_file else None

    try:
        consumption_plan = ConsumptionPlanOrchestrator().generate_plan(
            request.workload_patterns(),
            planning_horizon=horizon or request.planning_horizon,
            constraints=request.optimization_constraints(),
            discounts=request.discount_profile(),
            name=name or request.name,
        )
        impact = None
        if grant_request is not None:
            grant = grant_from_spec(BudgetPeriodLedger(), grant_request.grant, grant_request.as_of)
            impact = BudgetAlignmentAssessor().assess(consumption_plan, grant, grant_request.as_of)
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e

    if format != 'table':
        data = consumption_plan.to_dict()
        if impact is not None:
            data['budget_impact'] = impact.to_dict()
        emit(console, data, format, output)
        return

    console.print(f"\n[bold]{consumption_plan.name}[/bold] [dim]{consumption_plan.id}[/dim]")
    console.print(strategies_table(consumption_plan.recommended_purchases))

    breakdown = consumption_plan.cost_breakdown
    costs = Table(title="Cost Breakdown", show_header=True, header_style="bold blue")
    costs.add_column("Category", style="cyan")
    costs.add_column("Monthly Cost", justify="right", style="yellow")
    costs.add_column("Detail")
    costs.add_row("Reserved", f"${breakdown.reserved.monthly_cost:,.2f}",
                  f"{breakdown.reserved.instances} instances at {breakdown.reserved.utilization_rate:.0f}%")
    costs.add_row("Savings plans", f"${breakdown.savings_plans.monthly_cost:,.2f}",
                  f"${breakdown.savings_plans.commitment_amount:,.2f} committed")
    costs.add_row("Spot", f"${breakdown.spot.monthly_cost:,.2f}",
                  f"${breakdown.spot.estimated_savings:,.2f} saved vs on-demand")
    costs.add_row("On-demand", f"${breakdown.on_demand.monthly_cost:,.2f}",
                  f"{breakdown.on_demand.instances} instances ({breakdown.on_demand.usage})")
    costs.add_row("[bold]Total[/bold]", f"[bold]${breakdown.total_monthly_cost:,.2f}[/bold]",
                  f"${breakdown.total_annual_cost:,.2f}/year")
    console.print(costs)

    analysis = consumption_plan.analysis
    risks = consumption_plan.risks
    payback = (f"{analysis.payback_period_months:.1f} months"
               if analysis.payback_period_months is not None else "n/a")
    summary_text = f"""[bold green]Plan Generated![/bold green]

Horizon: [cyan]{consumption_plan.planning_horizon}[/cyan]
Monthly Savings: [bold yellow]${analysis.savings_amount:,.2f}[/bold yellow] ({analysis.savings_percentage:.1f}%)
Payback Period: [cyan]{payback}[/cyan]
Confidence: [cyan]{analysis.confidence:.0f}%[/cyan]

Risks:
  Spot interruption: {risks.spot_interruption:.2f}
  Under-utilization: {risks.under_utilization:.2f}
  Over-commitment: {risks.over_commitment:.2f}"""

    console.print("\n")
    console.print(Panel(summary_text, title="Plan Summary", border_style="green"))

    for heading, items, color in (("Recommendations", consumption_plan.recommendations, "white"),
                                  ("Insights", consumption_plan.insights, "cyan"),
                                  ("Warnings", consumption_plan.warnings, "yellow")):
        if items:
            console.print(f"\n[bold]{heading}:[/bold]")
            for item in items:
                console.print(f"  [{color}]• {item}[/{color}]")

    if impact is not None:
        status_color = "green" if impact.budget_check == 'pass' else "red"
        console.print(Panel(
            f"Budget check: [{status_color}]{impact.budget_check}[/{status_color}] "
            f"({impact.compliance_status}, {impact.constraint})\n"
            f"Planned: ${impact.plan_monthly_cost:,.2f}/month\n"
            f"Available: ${impact.monthly_budget_available:,.2f}/month "
            f"over {impact.months_remaining:.1f} months\n"
            f"Exhaustion risk: {impact.budget_exhaustion_risk:.0%}"
            + "".join(f"\n• {adjustment}" for adjustment in impact.adjustments),
            title=f"Budget Impact: {impact.grant_id}",
            border_style=status_color,
        ))

    if output:
        data = consumption_plan.to_dict()
        if impact is not None:
            data['budget_impact'] = impact.to_dict()
        emit(console, data, 'json', output)
