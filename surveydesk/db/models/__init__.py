# Import all models so SQLAlchemy metadata is fully populated on startup.
from surveydesk.db.models.survey import Survey
from surveydesk.db.models.submission import Submission
from surveydesk.db.models.survey_template import SurveyTemplate


__all__ = [
    "Survey",
    "Submission",
    "SurveyTemplate",
]
