"""Forms for the tournament blueprint."""

from flask_wtf import FlaskForm
from wtforms import SelectField, SelectMultipleField, StringField
from wtforms.validators import DataRequired, Length, Optional

from kicktrack.core.constants import DEFAULT_TARGET_SCORE

from .models import BRACKET, FORMAT_1V1, FORMAT_2V2, ROUND_ROBIN


class TournamentForm(FlaskForm):
    """Form for creating a tournament."""

    format = SelectField(
        "Format",
        choices=[(FORMAT_1V1, "1 vs 1"), (FORMAT_2V2, "2 vs 2")],
        default=FORMAT_1V1,
    )

    mode = SelectField(
        "Competition Mode",
        choices=[(ROUND_ROBIN, "Round Robin"), (BRACKET, "Single Elimination")],
        default=ROUND_ROBIN,
    )

    target_score = SelectField(
        "Target Score",
        choices=[(6, "6 points"), (11, "11 points")],
        coerce=int,
        default=DEFAULT_TARGET_SCORE,
    )

    host_name = StringField("Host Name", validators=[Optional(), Length(max=50)])
    venue_id = StringField("Venue", validators=[Optional()])
    venue_name = StringField("Venue Name", validators=[Optional()])


class TeamForm(FlaskForm):
    """Form for creating or editing a team."""

    name = StringField("Team Name", validators=[DataRequired(), Length(max=50)])

    # Choices depend on the tournament's players; the service checks membership.
    player_ids = SelectMultipleField(
        "Players", choices=[], validate_choice=False, validators=[DataRequired()]
    )


class GuestForm(FlaskForm):
    """Form for adding a guest player."""

    name = StringField("Guest Name", validators=[DataRequired(), Length(max=50)])
