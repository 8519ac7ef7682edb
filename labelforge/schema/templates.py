"""Base label template and business-vertical extensions.

The base template is the universal taxonomy shared by every vertical.
Extensions override, rename or add categories for one business type.
MANAGER and SUPPLIERS are placeholder parents: team members and
suppliers supplied at provisioning time are appended to them.

Usage:
    from labelforge.schema.templates import BASE_TEMPLATE, get_extension

    extension = get_extension("HVAC")
"""

from labelforge.errors import CompositionError

from .models import (
    MANAGERS,
    SUPPLIERS,
    Addition,
    BusinessExtension,
    CategoryOverride,
    ColorSpec,
    SchemaNode,
    leaves,
    node,
)

# Gmail palette colors used by the base template
GREEN = ColorSpec("#16a766", "#ffffff")
DARK_GREEN = ColorSpec("#0b804b", "#ffffff")
YELLOW = ColorSpec("#fad165", "#000000")
ORANGE = ColorSpec("#ffad47", "#000000")
BLUE = ColorSpec("#4a86e8", "#ffffff")
RED = ColorSpec("#fb4c2f", "#ffffff")
GREY = ColorSpec("#999999", "#ffffff")
LIGHT_BLUE = ColorSpec("#6d9eeb", "#ffffff")
MINT = ColorSpec("#43d692", "#000000")
PINK = ColorSpec("#e07798", "#ffffff")
PURPLE = ColorSpec("#a479e2", "#ffffff")

SCHEMA_VERSION = "1.3.0"


BASE_TEMPLATE = SchemaNode(
    name="",
    children=(
        node(
            "BANKING",
            node("BankAlert"),
            node("e-Transfer", *leaves("Transfer Sent", "Transfer Received")),
            node("Invoice"),
            node("Payment Confirmation"),
            node("Receipts", *leaves("Payment Received", "Payment Sent")),
            node("Refund"),
            color=GREEN,
            intent="ai.financial_transaction",
            critical=True,
            description="Invoices, payments, bank alerts and receipts",
        ),
        node(
            "FORMSUB",
            *leaves("New Submission", "Work Order Forms"),
            color=DARK_GREEN,
            intent="ai.form_submission",
            description="Website form submissions and online inquiry forms",
        ),
        node(
            "GOOGLE REVIEW",
            color=YELLOW,
            intent="ai.customer_feedback",
            description="Google Business reviews; single category, no subfolders",
        ),
        node(
            "MANAGER",
            node("Unassigned"),
            color=ORANGE,
            intent="ai.internal_routing",
            placeholder=MANAGERS,
            description="Internal routing; one subfolder per team member",
        ),
        node(
            "SALES",
            *leaves("Quotes", "Consultations", "Follow-ups"),
            color=GREEN,
            intent="ai.sales_inquiry",
            description="Sales inquiries, quotes and consultations",
        ),
        node(
            "SUPPLIERS",
            color=ORANGE,
            intent="ai.vendor_communication",
            placeholder=SUPPLIERS,
            description="Supplier and vendor communications; one subfolder per supplier",
        ),
        node(
            "SUPPORT",
            *leaves("Appointment Scheduling", "General", "Technical Support"),
            color=BLUE,
            intent="ai.support_ticket",
            description="Customer support and service requests",
        ),
        node(
            "URGENT",
            *leaves("Emergency Repairs", "Safety Issues", "System Outages", "Other"),
            color=RED,
            intent="ai.emergency_request",
            critical=True,
            description="Emergencies and time-sensitive requests",
        ),
        node(
            "MISC",
            *leaves("General", "Personal"),
            color=GREY,
            intent="ai.general",
            description="General correspondence",
        ),
        node(
            "PHONE",
            *leaves("Incoming Calls", "Voicemails"),
            color=LIGHT_BLUE,
            intent="ai.call_log",
            description="Call logs and voicemail notifications",
        ),
        node(
            "PROMO",
            *leaves("Social Media", "Special Offers"),
            color=MINT,
            intent="ai.marketing",
            description="Marketing campaigns and promotions",
        ),
        node(
            "RECRUITMENT",
            *leaves("Job Applications", "Interviews", "New Hires"),
            color=PINK,
            intent="ai.hr",
            description="Job applications, interviews and hiring",
        ),
        node(
            "SOCIALMEDIA",
            *leaves("Facebook", "Instagram", "Google My Business", "LinkedIn"),
            color=ORANGE,
            intent="ai.social_engagement",
            description="Social platform notifications and messages",
        ),
    ),
)


_BANKING_TRADES = CategoryOverride(
    children=(
        *leaves("Invoices", "Receipts", "Refunds", "Payment Confirmations", "Bank Alerts"),
        node("e-Transfer", *leaves("From Business", "To Business")),
    )
)


HVAC_EXTENSION = BusinessExtension(
    business_type="HVAC",
    overrides={
        "BANKING": _BANKING_TRADES,
        "FORMSUB": CategoryOverride(
            children=leaves("New Submissions", "Estimate Requests", "Maintenance Signup")
        ),
        "MANAGER": CategoryOverride(children=leaves("Unassigned", "Escalations", "Dispatch")),
        "SALES": CategoryOverride(
            children=leaves(
                "New System Quotes", "Consultations", "Maintenance Plans", "Ductless Quotes"
            )
        ),
        "SUPPLIERS": CategoryOverride(children=leaves("Carrier", "Trane", "Goodman", "Honeywell")),
        "SUPPORT": CategoryOverride(
            children=leaves(
                "Technical Support", "Parts & Filters", "Appointment Scheduling", "General Inquiries"
            )
        ),
        "URGENT": CategoryOverride(
            children=leaves("No Heat", "No Cooling", "Carbon Monoxide Alert", "Water Leak")
        ),
        "PHONE": CategoryOverride(children=leaves("Incoming Calls", "Voicemails", "After Hours Calls")),
        "PROMO": CategoryOverride(
            children=leaves("Seasonal Promotions", "Financing Offers", "Email Campaigns")
        ),
        "RECRUITMENT": CategoryOverride(
            children=leaves("Job Applications", "Interview Scheduling", "Technician Hiring")
        ),
        "SOCIALMEDIA": CategoryOverride(children=leaves("Facebook", "Instagram", "Google My Business")),
        "MISC": CategoryOverride(children=leaves("General", "Archive", "Internal Notes")),
    },
    additions=(
        Addition(
            node(
                "SERVICE",
                node("Emergency Heating", *leaves("Furnace No Heat", "Boiler Failure", "Gas Leak Concern")),
                node(
                    "Emergency Cooling",
                    *leaves("AC Not Cooling", "Compressor Failure", "Thermostat Malfunction"),
                ),
                node("Seasonal Maintenance", *leaves("Spring Tune-up", "Fall Inspection")),
                node("New Installations", *leaves("HVAC System Install", "Ductless Mini Split", "Heat Pump")),
                node(
                    "Indoor Air Quality",
                    *leaves("Filter Replacement", "Air Purifier Install", "Humidity Control"),
                ),
                node("Duct Cleaning", *leaves("Residential", "Commercial")),
                color=BLUE,
                intent="ai.service_request",
                critical=True,
            ),
            before="SALES",
        ),
        Addition(
            node(
                "WARRANTY",
                *leaves("Claims", "Pending Review", "Approved", "Denied", "Parts Replacement"),
                color=PURPLE,
                intent="ai.warranty_claim",
                critical=True,
            ),
            before="SALES",
        ),
    ),
    intent_keywords={
        "URGENT": ("no heat", "no cooling", "not working", "broken", "emergency", "urgent"),
        "SERVICE": ("maintenance", "tune-up", "service", "filter", "cleaning", "install"),
        "SALES": ("new", "install", "replacement", "upgrade", "system", "quote"),
    },
)


POOLS_SPAS_EXTENSION = BusinessExtension(
    business_type="Pools & Spas",
    overrides={
        "FORMSUB": CategoryOverride(
            children=leaves("New Submission", "Work Order Forms", "Service Requests", "Quote Requests"),
            description="Website form submissions, work orders and service requests",
        ),
        "SALES": CategoryOverride(
            children=leaves("New Spa Sales", "Accessory Sales", "Consultations", "Quote Requests"),
        ),
        "SUPPORT": CategoryOverride(
            children=leaves(
                "Appointment Scheduling", "General", "Technical Support", "Parts And Chemicals"
            ),
        ),
        "URGENT": CategoryOverride(
            children=leaves("Emergency Repairs", "Leak Emergencies", "Power Outages", "Other"),
        ),
        "MANAGER": CategoryOverride(children=leaves("Unassigned")),
    },
    order=(
        "BANKING",
        "SALES",
        "SUPPORT",
        "MANAGER",
        "SUPPLIERS",
        "PHONE",
        "URGENT",
        "SOCIALMEDIA",
        "GOOGLE REVIEW",
        "FORMSUB",
        "RECRUITMENT",
        "PROMO",
        "MISC",
    ),
    intent_keywords={
        "SUPPORT": ("repair", "broken", "not working", "error code", "leaking", "pump", "heater"),
        "SALES": ("new hot tub", "buying", "purchasing", "models", "prices", "delivery"),
    },
)


ELECTRICIAN_EXTENSION = BusinessExtension(
    business_type="Electrician",
    overrides={
        "BANKING": _BANKING_TRADES,
        "FORMSUB": CategoryOverride(
            children=leaves("New Submission", "Estimate Request", "Project Inquiry")
        ),
        "MANAGER": CategoryOverride(children=leaves("Unassigned", "Dispatch", "Escalations")),
        "SALES": CategoryOverride(
            children=leaves(
                "New Project Quotes", "Residential Estimates", "Commercial Bids", "Lighting Upgrades"
            )
        ),
        "SUPPLIERS": CategoryOverride(
            children=leaves("Home Depot Pro", "Graybar", "Wesco", "Rexel", "Ideal Industries")
        ),
        "SUPPORT": CategoryOverride(
            children=leaves(
                "Appointment Scheduling", "Estimate Follow-up", "Technical Support", "General"
            )
        ),
        "URGENT": CategoryOverride(
            children=leaves("Power Loss", "Burning Smell", "Sparking Outlet", "Tripped Breaker")
        ),
        "PHONE": CategoryOverride(
            children=leaves("Incoming Calls", "Outgoing Calls", "Voicemails", "After Hours Calls")
        ),
        "RECRUITMENT": CategoryOverride(
            children=leaves(
                "Job Applications", "Interview Scheduling", "Electrician Hiring", "Apprentice Programs"
            )
        ),
        "MISC": CategoryOverride(children=leaves("General", "Archive", "Personal")),
    },
    additions=(
        Addition(
            node(
                "SERVICE",
                node(
                    "Emergency Repairs",
                    *leaves("Power Outage", "Circuit Failure", "Breaker Trip", "Burning Smell"),
                ),
                node(
                    "Wiring",
                    *leaves("New Construction", "Rewiring Projects", "Panel Upgrades", "Subpanel Installs"),
                ),
                node(
                    "Lighting",
                    *leaves("Interior Lighting", "Exterior Lighting", "LED Upgrades", "Landscape Lighting"),
                ),
                node(
                    "Safety Inspections",
                    *leaves("Code Compliance", "Insurance Inspections", "Fire Risk Checks"),
                ),
                node(
                    "Installations",
                    *leaves("Ceiling Fans", "EV Chargers", "Smart Home Systems", "Generators"),
                ),
                color=BLUE,
                intent="ai.service_request",
                critical=True,
            ),
            before="MISC",
        ),
    ),
    intent_keywords={
        "URGENT": ("emergency", "no power", "sparking", "smoke", "burning smell", "breaker"),
        "SERVICE": ("panel upgrade", "outlet", "wiring", "lighting", "install", "inspection"),
    },
)


PLUMBER_EXTENSION = BusinessExtension(
    business_type="Plumber",
    overrides={
        "BANKING": _BANKING_TRADES,
        "FORMSUB": CategoryOverride(
            children=leaves("New Submissions", "Estimate Requests", "Service Requests")
        ),
        "MANAGER": CategoryOverride(children=leaves("Unassigned", "Dispatch", "Escalations")),
        "SALES": CategoryOverride(
            children=leaves(
                "Water Heater Quotes", "Fixture Quotes", "Repiping Estimates", "Consultations"
            )
        ),
        "SUPPORT": CategoryOverride(
            children=leaves(
                "Appointment Scheduling", "Warranty Questions", "Technical Support", "General"
            )
        ),
        "URGENT": CategoryOverride(
            children=leaves("Burst Pipe", "Active Leak", "Sewage Backup", "No Water", "Other")
        ),
        "PHONE": CategoryOverride(
            children=leaves("Incoming Calls", "Voicemails", "After Hours Calls")
        ),
        "RECRUITMENT": CategoryOverride(
            children=leaves("Job Applications", "Interview Scheduling", "Plumber Hiring")
        ),
    },
    additions=(
        Addition(
            node(
                "SERVICE",
                node("Drain Cleaning", *leaves("Clogged Drains", "Main Line", "Camera Inspection")),
                node(
                    "Water Heaters",
                    *leaves("No Hot Water", "Tank Repair", "Tankless Install", "Replacement"),
                ),
                node(
                    "Fixture Installation",
                    *leaves("Faucets", "Toilets", "Sinks", "Dishwasher Hookup"),
                ),
                node("Leak Detection", *leaves("Whole Home", "Slab Leaks")),
                color=BLUE,
                intent="ai.service_request",
                critical=True,
            ),
            before="SALES",
        ),
    ),
    intent_keywords={
        "URGENT": ("leak", "burst", "flooding", "water damage", "no water", "sewage", "emergency"),
        "SERVICE": ("clogged", "drain", "snake", "water heater", "hot water", "faucet", "toilet"),
        "SALES": ("install", "replace", "tankless", "quote", "estimate"),
    },
)


ROOFING_EXTENSION = BusinessExtension(
    business_type="Roofing",
    overrides={
        "BANKING": _BANKING_TRADES,
        "FORMSUB": CategoryOverride(
            children=leaves("New Submissions", "Inspection Requests", "Estimate Requests")
        ),
        "SALES": CategoryOverride(
            children=leaves(
                "Roof Replacement Quotes", "Repair Quotes", "Material Options", "Consultations"
            )
        ),
        "SUPPORT": CategoryOverride(
            children=leaves(
                "Appointment Scheduling", "Warranty Questions", "Insurance Claims", "General"
            )
        ),
        "URGENT": CategoryOverride(
            children=leaves("Storm Damage", "Leak Emergency", "Structural Damage", "Other")
        ),
        "RECRUITMENT": CategoryOverride(
            children=leaves("Job Applications", "Interview Scheduling", "Crew Hiring")
        ),
    },
    additions=(
        Addition(
            node(
                "SERVICE",
                node(
                    "Inspections",
                    *leaves("Annual Inspection", "Home Sale Inspection", "Insurance Inspection"),
                ),
                node(
                    "Repairs",
                    *leaves("Shingle Replacement", "Flashing Repair", "Emergency Tarping"),
                ),
                node("Gutters", *leaves("Cleaning", "Installation", "Repairs")),
                node("Replacements", *leaves("Asphalt Shingles", "Metal Roofing", "Flat Roofing")),
                color=BLUE,
                intent="ai.service_request",
                critical=True,
            ),
            before="SALES",
        ),
    ),
    intent_keywords={
        "URGENT": ("leak", "emergency", "storm", "damage", "water coming in", "urgent"),
        "SERVICE": ("inspection", "repair", "shingles", "flashing", "gutters"),
        "SALES": ("replacement", "new roof", "re-roof", "quote", "estimate"),
    },
)


# Fallback vertical: the base taxonomy as-is
GENERAL_EXTENSION = BusinessExtension(
    business_type="General",
    intent_keywords={
        "SUPPORT": ("service", "help", "need", "repair", "fix"),
        "SALES": ("quote", "estimate", "price", "cost", "how much"),
        "MISC": ("question", "info", "information", "about"),
    },
)


# Business type key -> extension. Several keys share one vertical.
BUSINESS_EXTENSIONS: dict[str, BusinessExtension] = {
    "HVAC": HVAC_EXTENSION,
    "Plumber": PLUMBER_EXTENSION,
    "Roofing": ROOFING_EXTENSION,
    "Pools & Spas": POOLS_SPAS_EXTENSION,
    "Hot tub & Spa": POOLS_SPAS_EXTENSION,
    "Pools": POOLS_SPAS_EXTENSION,
    "Electrician": ELECTRICIAN_EXTENSION,
    "General": GENERAL_EXTENSION,
    "General Contractor": GENERAL_EXTENSION,
}


def get_business_types() -> list[str]:
    """List supported business type keys."""
    return list(BUSINESS_EXTENSIONS.keys())


def get_extension(business_type: str) -> BusinessExtension:
    """Look up the extension for a business type.

    Matching is case-insensitive on the registry key.

    Raises:
        CompositionError: If the business type is unknown.
    """
    key = business_type.strip().casefold()
    for name, extension in BUSINESS_EXTENSIONS.items():
        if name.casefold() == key:
            return extension

    supported = ", ".join(get_business_types())
    raise CompositionError(
        f"Unknown business type '{business_type}'. Supported: {supported}"
    )
