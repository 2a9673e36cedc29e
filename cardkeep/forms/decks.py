from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, SelectField, BooleanField
from wtforms.validators import DataRequired, Length, NumberRange, Optional
from cardkeep.forms.fields import StrictIntegerField, text_only
from cardkeep.models.deck import MTG_FORMATS

# JSON bodies carry real booleans, not just "false" strings
_FALSE_VALUES = (False, "false", "False", "0", "")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class DeckForm(FlaskForm):
    """Create / update payload for /api/decks. Reads JSON bodies as form data."""
    name = StringField(
        "Deck Name",
        validators=[
            text_only("Deck name must be text"),
            DataRequired(message="Deck name is required"),
            Length(1, 100),
        ],
        filters=[_strip],
    )
    description = TextAreaField(
        "Description",
        validators=[text_only("Description must be text"), Optional(), Length(0, 1000)],
    )
    format = SelectField(
        "Format",
        choices=[("", "— Not set —")] + [(f, f) for f in MTG_FORMATS],
        default="",
        validators=[Optional()],
    )


class DeckImportForm(FlaskForm):
    """Pasted decklist, optionally saved straight away as a new deck."""
    deck_text = TextAreaField(
        "Decklist",
        validators=[text_only("Deck text must be text"), DataRequired(message="Deck text is required")],
    )
    deck_name = StringField(
        "Deck Name",
        validators=[text_only("Deck name must be text"), Optional(), Length(1, 100)],
        filters=[_strip],
    )
    format = SelectField(
        "Format",
        choices=[("", "— Not set —")] + [(f, f) for f in MTG_FORMATS],
        default="",
        validators=[Optional()],
    )
    description = TextAreaField(
        "Description",
        validators=[text_only("Description must be text"), Optional(), Length(0, 1000)],
    )
    save = BooleanField("Save as deck", default=False, false_values=_FALSE_VALUES)


class DeckCardForm(FlaskForm):
    """Card-in-deck payload: {"card_id", "quantity", "is_sideboard"}."""
    card_id = StringField(
        "Card",
        validators=[text_only("Card ID is required"), DataRequired(message="Card ID is required")],
    )
    quantity = StrictIntegerField(
        "Quantity",
        validators=[Optional(), NumberRange(min=0, message="Quantity must be a non-negative integer")],
    )
    is_sideboard = BooleanField("Sideboard", default=False, false_values=_FALSE_VALUES)
