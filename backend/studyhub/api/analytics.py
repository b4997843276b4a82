"""Learning analytics for the authenticated user."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studyhub.api.deps import get_current_user
from studyhub.db.models import User
from studyhub.db.session import get_db
from studyhub.schemas.analytics import CategoryPerformance, DashboardRead
from studyhub.services import analytics

router = APIRouter()


@router.get("/dashboard", response_model=DashboardRead)
def dashboard(
    timeframe: str = "30d",
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Overview, activity and performance over ``7d``, ``30d``, ``90d`` or ``1y``."""
    return analytics.compute_dashboard(db, current_user, timeframe)


@router.get("/quiz-performance", response_model=list[CategoryPerformance])
def quiz_performance(
    timeframe: str = "30d",
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return analytics.quiz_performance(db, current_user, timeframe)
