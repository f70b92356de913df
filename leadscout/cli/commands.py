import asyncio
import typer

from leadscout.config import settings
from leadscout.services.leadgen.exceptions import (
    ConfigurationError,
    LeadGenError,
    NoDataError,
    RateLimitError,
)
from leadscout.services.leadgen.export import write_csv
from leadscout.services.leadgen.models import PlanTier, SearchParams
from leadscout.services.leadgen.plans import PLANS
from leadscout.services.leadgen.service import Service

app = typer.Typer(help="Find local business leads with a Maps-grounded model.")


def _get_service() -> Service:
    return Service(
        gemini_api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        batch_size=settings.leadgen_batch_size,
        backoff_seconds=settings.leadgen_backoff_seconds,
    )


@app.command()
def search(
    term: str = typer.Argument(..., help="What to search for, e.g. 'plumbers'"),
    location: str = typer.Argument(..., help="Where, e.g. 'Austin, TX'"),
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of leads to find"),
    plan: PlanTier = typer.Option(
        None, "--plan", "-p", help="Plan whose per-search cap applies (default from settings)"
    ),
    csv_path: str = typer.Option(None, "--csv", help="Write the results to this CSV file"),
):
    """
    Find COUNT unique businesses matching TERM near LOCATION.

    Examples:
        # 10 leads on the free plan
        leadscout search "coffee shops" "Portland, OR"

        # 40 leads, saved to CSV
        leadscout search dentists "Miami, FL" -n 40 --plan PRO --csv dentists.csv
    """

    def on_progress(found: int) -> None:
        print(f"  ... {found}/{count} leads found")

    async def run():
        service = _get_service()
        params = SearchParams(
            term=term,
            location=location,
            count=count,
            plan=plan or settings.default_plan,
        )
        return await service.search(params, on_progress=on_progress)

    try:
        result = asyncio.run(run())
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        raise typer.Exit(code=2)
    except RateLimitError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=3)
    except NoDataError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    except (LeadGenError, ValueError) as e:
        print(f"❌ Error: {e}")
        raise typer.Exit(code=1)

    for i, lead in enumerate(result.leads, start=1):
        rating = f"{lead.rating}★ ({lead.review_count or 0})" if lead.rating is not None else "-"
        print(f"{i:>3}. {lead.name} | {lead.phone or '-'} | {lead.website or '-'} | {rating}")
        if lead.address:
            print(f"     {lead.address}")

    stats = result.stats
    if stats.shortfall:
        print(
            f"⚠️  Found {stats.returned} of {count} requested leads "
            f"({stats.queries} queries). Try a broader term for more."
        )
    else:
        print(f"✅ Found {stats.returned} leads in {stats.queries} queries")

    if csv_path:
        path = write_csv(result.leads, csv_path)
        print(f"Saved CSV to {path}")


@app.command()
def draft_email(
    business_name: str = typer.Argument(..., help="Business to write to"),
    industry: str = typer.Option("local", "--industry", "-i", help="Business industry"),
    location: str = typer.Option("", "--location", "-l", help="Business location"),
):
    """Draft a cold outreach email for a business."""

    async def run():
        return await _get_service().draft_outreach_email(business_name, industry, location)

    try:
        email = asyncio.run(run())
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        raise typer.Exit(code=2)
    except (LeadGenError, ValueError) as e:
        print(f"❌ Error: {e}")
        raise typer.Exit(code=1)

    print(f"Subject: {email.subject}\n")
    print(email.body)


@app.command()
def plans():
    """List plans and their per-search lead caps."""
    for plan in PLANS.values():
        marker = " (recommended)" if plan.recommended else ""
        print(f"{plan.id.value:<9} {plan.name:<8} ${plan.price:>3}/mo  "
              f"{plan.max_leads_per_search} leads per search{marker}")
