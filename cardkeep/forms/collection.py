from flask_wtf import FlaskForm
from wtforms import StringField, BooleanField
from wtforms.validators import DataRequired, NumberRange

from cardkeep.forms.fields import StrictIntegerField, text_only

# JSON bodies carry real booleans, not just "false" strings
_FALSE_VALUES = (False, "false", "False", "0", "")


class QuantityForm(FlaskForm):
    """PUT /api/collection/quantity — {"card_id": ..., "quantity": n}, n ≥ 0."""
    card_id = StringField(
        "Card",
        validators=[
            text_only("Invalid card ID or quantity"),
            DataRequired(message="Invalid card ID or quantity"),
        ],
    )
    # NumberRange rather than InputRequired: 0 is a valid (logical delete) value
    quantity = StrictIntegerField(
        "Quantity",
        validators=[NumberRange(min=0, message="Invalid card ID or quantity")],
        message="Invalid card ID or quantity",
    )


class FavoriteForm(FlaskForm):
    is_favorite = BooleanField("Favorite", default=False, false_values=_FALSE_VALUES)
