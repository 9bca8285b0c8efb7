"""Forms for the game blueprint."""

from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, StringField
from wtforms.validators import AnyOf, DataRequired, Optional

from kicktrack.core.constants import DEFAULT_TARGET_SCORE

from .models import GOAL_TYPES, NORMAL, POSITIONS


class GameForm(FlaskForm):
    """Settings of a new game. Teams are read from the request body."""

    venue_id = StringField("Venue", validators=[Optional()])
    venue_name = StringField("Venue Name", validators=[Optional()])
    target_score = SelectField(
        "Target Score",
        choices=[(6, "6 points"), (11, "11 points")],
        coerce=int,
        default=DEFAULT_TARGET_SCORE,
    )


class GoalForm(FlaskForm):
    """Form for recording a goal."""

    team_index = IntegerField("Team", validators=[AnyOf([0, 1])])
    scorer_id = StringField("Scorer", validators=[DataRequired()])
    scorer_name = StringField("Scorer Name", validators=[Optional()])
    position = SelectField(
        "Position",
        choices=[(p, p.capitalize()) for p in POSITIONS],
        validators=[DataRequired()],
    )
    type = SelectField(
        "Goal Type",
        choices=[(t, t.replace("_", " ").capitalize()) for t in GOAL_TYPES],
        default=NORMAL,
    )


class ForfeitForm(FlaskForm):
    """Form for forfeiting a game."""

    team_index = IntegerField("Forfeiting Team", validators=[AnyOf([0, 1])])
