import click
from datetime import date
from pathlib import Path
from typing import List, Optional
from rich.panel import Panel
from rich.table import Table

from ...budget.dashboard import GrantDashboardBuilder
from ...budget.forecasting import BudgetForecaster, LinearTrendModel, TrailingAverageModel
from ...budget.ledger import BudgetPeriodLedger
from ...budget.models import BudgetAlert, Grant, MonthlySpend
from ...core.exceptions import ConsumptionPlannerError
from ...core.models import to_plain
from ...core.validation import DashboardRequest, ForecastRequest, GrantSpec, MonthlySpendSpec
from ..output import emit, load_request


def grant_from_spec(ledger: BudgetPeriodLedger, spec: GrantSpec,
                    as_of: Optional[date] = None) -> Grant:
    """Create a grant and charge its spend to date against the current period"""
    grant, _ = _grant_with_alerts(ledger, spec, as_of)
    return grant


def _grant_with_alerts(ledger: BudgetPeriodLedger, spec: GrantSpec, as_of: Optional[date]):
    grant = ledger.create_grant_from_spec(spec)
    alerts: List[BudgetAlert] = []
    if spec.spent_to_date:
        period = ledger.current_period(grant, as_of)
        alerts = ledger.update_spending(grant, period, spec.spent_to_date, as_of)
    return grant, alerts


def _history(specs: List[MonthlySpendSpec]) -> List[MonthlySpend]:
    return [MonthlySpend(**spec.model_dump()) for spec in specs]


@click.group()
def budget():
    """Grant budget periods, forecasts and dashboards"""
    pass


@budget.command()
@click.argument('grant_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(), help='Output file for the grant and its periods')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def periods(ctx, grant_file, output, format):
    """
    Split a grant into budget periods and check spend to date

    Examples:
        consumption-planner budget periods grant.yaml
    """
    console = ctx.obj['console']
    request = load_request(grant_file, ForecastRequest)

    try:
        grant, alerts = _grant_with_alerts(BudgetPeriodLedger(), request.grant, request.as_of)
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e

    if format != 'table':
        emit(console, {'grant': grant.to_dict(), 'alerts': to_plain(alerts)}, format, output)
        return

    table = Table(title=f"{grant.title} ({grant.budget_period_type.value})",
                  show_header=True, header_style="bold magenta")
    table.add_column("Period", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Allocated", justify="right", style="yellow")
    table.add_column("Spent", justify="right")
    table.add_column("Utilization", justify="right")

    for period in grant.budget_periods:
        utilization = period.utilization_percentage
        color = "red" if utilization >= period.critical_threshold else (
            "yellow" if utilization >= period.warning_threshold else "green")
        table.add_row(
            period.period_name,
            period.start_date.isoformat(),
            period.end_date.isoformat(),
            f"${period.total_available:,.2f}",
            f"${period.spent_amount:,.2f}",
            f"[{color}]{utilization:.1f}%[/{color}]",
        )
    console.print(table)

    for alert in alerts:
        style = "red" if alert.severity.value in ('high', 'critical') else "yellow"
        console.print(Panel(
            "\n".join([alert.message] + [f"• {action}" for action in alert.recommended_actions]),
            title=f"{alert.type.value.title()} Alert",
            border_style=style,
        ))

    if output:
        emit(console, {'grant': grant.to_dict(), 'alerts': to_plain(alerts)}, 'json', output)


@budget.command()
@click.argument('forecast_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--method', type=click.Choice(['trailing-average', 'linear-trend']),
              default='trailing-average', help='Forecast model')
@click.option('--window', type=int, help='Months of history for the trailing average')
@click.option('--output', '-o', type=click.Path(), help='Output file for the forecast')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def forecast(ctx, forecast_file, method, window, output, format):
    """
    Forecast a grant's spend for its current budget period

    Examples:
        consumption-planner budget forecast grant.yaml --method linear-trend
    """
    console = ctx.obj['console']
    request = load_request(forecast_file, ForecastRequest)
    model = LinearTrendModel() if method == 'linear-trend' else TrailingAverageModel(window)

    try:
        grant = grant_from_spec(BudgetPeriodLedger(), request.grant, request.as_of)
        result = BudgetForecaster(model).forecast(grant, _history(request.history), request.as_of)
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e

    if format != 'table':
        emit(console, result.to_dict(), format, output)
        return

    exceed = "[red]yes[/red]" if result.will_exceed_budget else "[green]no[/green]"
    exhaustion = (result.projected_exhaustion_date.isoformat()
                  if result.projected_exhaustion_date else "n/a")
    console.print(Panel(
        f"Method: [cyan]{result.method}[/cyan]\n"
        f"Average monthly spend: [bold]${result.average_monthly_spend:,.2f}[/bold]\n"
        f"Remaining months: {result.remaining_months}\n"
        f"Projected period spend: [bold yellow]${result.projected_total_spend:,.2f}[/bold yellow]\n"
        f"Will exceed budget: {exceed}\n"
        f"Projected exhaustion: {exhaustion}\n"
        f"Confidence: [cyan]{result.confidence:.0f}%[/cyan]",
        title=f"Forecast: {grant.title}",
        border_style="blue",
    ))

    scenarios = Table(title="Scenarios", show_header=True, header_style="bold blue")
    scenarios.add_column("Scenario", style="cyan")
    scenarios.add_column("Probability", justify="right")
    scenarios.add_column("Projected Spend", justify="right", style="yellow")
    for scenario in result.scenarios:
        scenarios.add_row(scenario.name, f"{scenario.probability:.0%}", f"${scenario.projected_spend:,.2f}")
    console.print(scenarios)

    if result.monthly_projections:
        months = Table(title="Monthly Projections", show_header=True, header_style="bold blue")
        months.add_column("Month", style="cyan")
        months.add_column("Projected", justify="right")
        months.add_column("Range", justify="right", style="dim")
        for projection in result.monthly_projections:
            months.add_row(
                projection.month.strftime('%b %Y'),
                f"${projection.projected_spend:,.2f}",
                f"${projection.lower_bound:,.2f} - ${projection.upper_bound:,.2f}",
            )
        console.print(months)

    for recommendation in result.recommendations:
        console.print(f"\n[bold]{recommendation.title}[/bold] [dim]({recommendation.priority})[/dim]")
        console.print(f"  {recommendation.description}")
        for action in recommendation.actions:
            console.print(f"  • {action}")

    if output:
        emit(console, result.to_dict(), 'json', output)


@budget.command()
@click.argument('portfolio_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(), help='Output file for the dashboard')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def dashboard(ctx, portfolio_file, output, format):
    """
    Summarize spend and utilization across several grants

    Examples:
        consumption-planner budget dashboard portfolio.yaml
    """
    console = ctx.obj['console']
    request = load_request(portfolio_file, DashboardRequest)

    try:
        ledger = BudgetPeriodLedger()
        as_of = request.as_of or ledger.clock.now().date()
        grants = [grant_from_spec(ledger, spec, as_of) for spec in request.grants]
        result = GrantDashboardBuilder().build(grants, _history(request.history), as_of)
    except ConsumptionPlannerError as e:
        raise click.ClickException(str(e)) from e

    if format != 'table':
        emit(console, result.to_dict(), format, output)
        return

    current = result.current_period
    console.print(Panel(
        f"Total budget: [bold]${result.total_budget:,.2f}[/bold]\n"
        f"Total spent: [bold yellow]${result.total_spent:,.2f}[/bold yellow]\n"
        f"Remaining: [bold green]${result.total_remaining:,.2f}[/bold green]\n\n"
        f"Current periods: ${current.total_spent:,.2f} of ${current.total_allocated:,.2f} "
        f"({current.utilization_rate:.1f}%), {current.days_remaining} days until the next close",
        title="Grant Portfolio",
        border_style="green",
    ))

    utilization = result.utilization
    if utilization.over_utilized_grants:
        console.print(f"[red]Over-utilized:[/red] {', '.join(utilization.over_utilized_grants)}")
    if utilization.under_utilized_grants:
        console.print(f"[yellow]Under-utilized:[/yellow] {', '.join(utilization.under_utilized_grants)}")
    for breach in result.threshold_breaches:
        console.print(f"  [red]•[/red] {breach}")
    for deadline in result.upcoming_deadlines:
        console.print(f"  [yellow]•[/yellow] {deadline.grant_id} {deadline.period_name} closes "
                      f"{deadline.end_date.isoformat()} ({deadline.days_remaining} days)")
    for recommendation in utilization.recommendations:
        console.print(f"  • {recommendation}")

    if output:
        emit(console, result.to_dict(), 'json', output)
