from app.models.assignment import SurveyAssignment
from app.models.base import Base
from app.models.caregiver import Caregiver, Patient
from app.models.check_in import WeeklyCheckIn
from app.models.response import SurveyResponse, SurveyResponseItem
from app.models.schedule import SurveySchedule
from app.models.survey import Survey, SurveyOption, SurveyQuestion, SurveyRegion

__all__ = [
    "Base",
    "Caregiver",
    "Patient",
    "WeeklyCheckIn",
    "Survey",
    "SurveyRegion",
    "SurveyQuestion",
    "SurveyOption",
    "SurveySchedule",
    "SurveyAssignment",
    "SurveyResponse",
    "SurveyResponseItem",
]
