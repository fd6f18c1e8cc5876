from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from decimal import Decimal
from typing import Dict, List, Optional
import logging

import config
from distribution import (
    BillBreakdownEntry,
    DistributionData,
    InvalidInputError,
    PartnerHours,
    UnrepresentableAmountError,
    allocate_bills,
    distribute,
    is_canonical,
)
from timesheet import TimesheetParseError, parse_hours_text

logger = logging.getLogger(__name__)

config.configure_logging()

app = FastAPI(title="Tip Distribution API")

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models
class CalculateRequest(BaseModel):
    total_amount: Decimal
    partners: List[PartnerHours]
    denominations: Optional[List[Decimal]] = None
    # denomination -> count of bills/coins on hand
    inventory: Optional[Dict[str, int]] = None


class BreakdownRequest(BaseModel):
    amount: Decimal
    denominations: Optional[List[Decimal]] = None


class ParseHoursRequest(BaseModel):
    text: str


def engine_error(e: Exception) -> HTTPException:
    """
    Map engine errors onto HTTP errors: bad input is the caller's problem
    (400), an amount the denominations can't pay is a configuration or cash
    problem (422). The error code tells the two apart.
    """
    if isinstance(e, UnrepresentableAmountError):
        status = 422
    else:
        status = 400
    logger.warning("request_rejected", extra={"code": e.code, "error": str(e)})
    return HTTPException(status_code=status, detail={"code": e.code, "message": str(e)})


@app.get("/")
def read_root():
    return {"message": "Tip Distribution API"}


@app.get("/denominations")
def get_denominations():
    """
    Configured denominations, largest first, and whether paying largest
    first always uses the fewest bills with them.
    """
    denominations = config.get_denominations()
    return {
        "denominations": [str(d) for d in denominations],
        "canonical": is_canonical(denominations),
    }


@app.post("/calculate", response_model=DistributionData)
def calculate_tips(request: CalculateRequest):
    """
    Split the pool by hours worked and break every payout into bills
    """
    denominations = request.denominations or config.get_denominations()
    try:
        return distribute(
            request.total_amount,
            request.partners,
            denominations=denominations,
            inventory=request.inventory,
        )
    except (InvalidInputError, UnrepresentableAmountError) as e:
        raise engine_error(e)


@app.post("/breakdown", response_model=List[BillBreakdownEntry])
def breakdown(request: BreakdownRequest):
    """
    Bills and coins for a single amount
    """
    denominations = request.denominations or config.get_denominations()
    try:
        return allocate_bills(request.amount, denominations)
    except (InvalidInputError, UnrepresentableAmountError) as e:
        raise engine_error(e)


@app.post("/parse-hours", response_model=List[PartnerHours])
def parse_hours(request: ParseHoursRequest):
    """
    Turn 'Name: hours' lines (as read off a timesheet photo) into a roster
    """
    try:
        return parse_hours_text(request.text)
    except TimesheetParseError as e:
        raise HTTPException(status_code=400, detail={"code": "unparseable_timesheet", "message": str(e)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
