"""Dashboard / analytics schemas."""

from datetime import datetime

from pydantic import BaseModel


class Overview(BaseModel):
    total_content: int
    completed_content: int
    content_completion_rate: int
    total_quizzes: int
    passed_quizzes: int
    quiz_pass_rate: int
    total_study_minutes: int
    average_session_minutes: int


class RecentSession(BaseModel):
    type: str
    title: str | None = None
    minutes: int
    occurred_at: datetime


class DayBucket(BaseModel):
    date: str
    minutes: int
    sessions: int


class Activity(BaseModel):
    current_streak: int
    longest_streak: int
    recent_sessions: list[RecentSession] = []
    study_time_by_day: list[DayBucket] = []


class CategoryCount(BaseModel):
    category: str
    count: int


class Performance(BaseModel):
    average_quiz_score: int
    completed_attempts: int
    strongest_categories: list[CategoryCount] = []


class DashboardRead(BaseModel):
    timeframe: str
    overview: Overview
    activity: Activity
    performance: Performance


class CategoryPerformance(BaseModel):
    category: str
    total_attempts: int
    average_score: float
    best_score: int
    pass_rate: float
    avg_time_per_quiz: float
