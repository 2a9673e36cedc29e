"""
Field and validator helpers for forms fed from JSON bodies.

FlaskForm hands JSON values to the fields untouched, so an IntegerField can
see None, floats or booleans and a StringField can see numbers. These
helpers turn such values into ordinary validation errors.
"""
from wtforms import IntegerField
from wtforms.validators import StopValidation


class StrictIntegerField(IntegerField):
    """IntegerField that refuses null, booleans and non-integral numbers."""

    def __init__(self, label=None, validators=None, message="Quantity must be a whole number", **kwargs):
        super().__init__(label, validators, **kwargs)
        self.message = message

    def process_formdata(self, valuelist):
        if not valuelist:
            return

        value = valuelist[0]
        if value is None or isinstance(value, bool):
            self.data = None
            raise ValueError(self.message)
        if isinstance(value, float) and not value.is_integer():
            self.data = None
            raise ValueError(self.message)

        try:
            self.data = int(value)
        except (TypeError, ValueError) as exc:
            self.data = None
            raise ValueError(self.message) from exc


def text_only(message: str = "Must be text"):
    """Stop the validator chain when the value is present but not a string."""

    def _check(form, field):
        if field.data is not None and not isinstance(field.data, str):
            raise StopValidation(message)

    return _check
