"""Subscription plans and their per-search lead caps."""

from leadscout.services.leadgen.exceptions import PlanLimitError
from leadscout.services.leadgen.models import PlanConfig, PlanTier

PLANS: dict[PlanTier, PlanConfig] = {
    PlanTier.FREE: PlanConfig(
        id=PlanTier.FREE,
        name="Starter",
        price=0,
        max_leads_per_search=10,
        features=[
            "10 Leads Per Search",
            "Basic Maps Extraction",
            "Standard Support",
            "CSV Export",
        ],
    ),
    PlanTier.PRO: PlanConfig(
        id=PlanTier.PRO,
        name="Growth",
        price=29,
        max_leads_per_search=50,
        recommended=True,
        features=[
            "50 Leads Per Search",
            "Priority Maps Grounding",
            "Enriched Data (Reviews)",
            "Email Support",
        ],
    ),
    PlanTier.BUSINESS: PlanConfig(
        id=PlanTier.BUSINESS,
        name="Scale",
        price=79,
        max_leads_per_search=100,
        features=[
            "100 Leads Per Search",
            "Highest Speed Processing",
            "Advanced Data Enrichment",
            "API Access (Beta)",
        ],
    ),
}


def get_plan(tier: PlanTier | str) -> PlanConfig:
    """Look up a plan by tier (case-insensitive); unknown tiers raise ValueError."""
    if isinstance(tier, str) and not isinstance(tier, PlanTier):
        tier = tier.strip().upper()
    try:
        return PLANS[PlanTier(tier)]
    except ValueError:
        raise ValueError(
            f"Unknown plan '{tier}'. Available plans: {[t.value for t in PLANS]}"
        ) from None


def check_plan_limit(tier: PlanTier | str, count: int) -> PlanConfig:
    """Ensure ``count`` fits the plan's per-search cap."""
    plan = get_plan(tier)
    if count > plan.max_leads_per_search:
        raise PlanLimitError(
            f"The {plan.name} plan allows up to {plan.max_leads_per_search} leads per search "
            f"({count} requested). Upgrade to search for more."
        )
    return plan
