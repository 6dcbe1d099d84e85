from pathlib import Path
from decimal import Decimal
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

def money_filter(value) -> str:
    """A Jinja2 filter rendering an amount with two decimals."""
    if not value:
        return "0.00"
    return f"{Decimal(str(value)):.2f}"

# Create a single, shared Jinja2Templates instance
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
# Add the custom filter to the environment
templates.env.filters["money"] = money_filter
