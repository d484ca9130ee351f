"""
WTForms form classes for the plot API

JSON bodies are converted to form data with ``json_formdata`` and validated
with these forms. CSRF is disabled: the API is token-less JSON.
"""

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import DecimalField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, InputRequired, Length, NumberRange, Optional, StopValidation

from app.domain.enums import PERIODS


def json_formdata(payload, fields):
    """Build form data from a JSON object, mapping camelCase keys to fields.

    Values are passed as strings so DecimalField parses ``3.6`` exactly.
    """
    data = MultiDict()
    payload = payload if isinstance(payload, dict) else {}
    for json_key, field_name in fields.items():
        value = payload.get(json_key)
        if value is None:
            continue
        data.add(field_name, value if isinstance(value, str) else str(value))
    return data


def finite_number(form, field):
    """Reject NaN and Infinity, which DecimalField parses and NumberRange cannot compare."""
    if field.data is not None and not field.data.is_finite():
        raise StopValidation(f'{field.label.text} must be a number')


def form_errors(form, row=None):
    details = []
    for field_name, messages in form.errors.items():
        for message in messages:
            item = {'field': field_name, 'message': message}
            if row is not None:
                item['row'] = row
            details.append(item)
    return details


class _ApiForm(FlaskForm):
    class Meta:
        csrf = False


class PhysicalPlotForm(_ApiForm):
    """Create a single physical plot"""

    JSON_FIELDS = {
        'plotNumber': 'plot_number',
        'period': 'period',
        'areaSqm': 'area_sqm',
        'notes': 'notes',
    }

    plot_number = StringField('Plot number', validators=[
        DataRequired(message='Plot number is required'),
        Length(max=50, message='Plot number must be 50 characters or less'),
    ])
    period = StringField('Period', validators=[
        DataRequired(message='Period is required'),
        AnyOf(PERIODS, message='Unknown period'),
    ])
    area_sqm = DecimalField('Area (sqm)', places=2, validators=[
        InputRequired(message='Area is required'),
        finite_number,
        NumberRange(min=0.01, message='Area must be greater than 0'),
    ])
    notes = TextAreaField('Notes', validators=[
        Optional(),
        Length(max=1000, message='Notes must be 1000 characters or less'),
    ])


class BulkPlotItemForm(_ApiForm):
    """One row of a bulk import. Area defaults to the standard plot size."""

    JSON_FIELDS = PhysicalPlotForm.JSON_FIELDS

    plot_number = StringField('Plot number', validators=[
        DataRequired(message='Plot number is required'),
        Length(max=50, message='Plot number must be 50 characters or less'),
    ])
    period = StringField('Period', validators=[
        DataRequired(message='Period is required'),
        AnyOf(PERIODS, message='Unknown period'),
    ])
    area_sqm = DecimalField('Area (sqm)', places=2, validators=[
        Optional(),
        finite_number,
        NumberRange(min=0.01, message='Area must be greater than 0'),
    ])
    notes = TextAreaField('Notes', validators=[
        Optional(),
        Length(max=1000, message='Notes must be 1000 characters or less'),
    ])


class PhysicalPlotUpdateForm(_ApiForm):
    """Partial update; only supplied fields are applied"""

    JSON_FIELDS = PhysicalPlotForm.JSON_FIELDS

    plot_number = StringField('Plot number', validators=[
        Optional(),
        Length(max=50, message='Plot number must be 50 characters or less'),
    ])
    period = StringField('Period', validators=[
        Optional(),
        AnyOf(PERIODS, message='Unknown period'),
    ])
    area_sqm = DecimalField('Area (sqm)', places=2, validators=[
        Optional(),
        finite_number,
        NumberRange(min=0.01, message='Area must be greater than 0'),
    ])
    notes = TextAreaField('Notes', validators=[
        Optional(),
        Length(max=1000, message='Notes must be 1000 characters or less'),
    ])


class ContractPlotForm(_ApiForm):
    """Claim (or resize a claim on) part of a physical plot"""

    JSON_FIELDS = {
        'contractAreaSqm': 'contract_area_sqm',
        'saleStatus': 'sale_status',
        'locationDescription': 'location_description',
    }

    # Non-positive areas are rejected by the ledger with its own reason.
    contract_area_sqm = DecimalField('Contract area (sqm)', places=2, validators=[
        InputRequired(message='Contract area is required'),
        finite_number,
    ])
    sale_status = StringField('Sale status', validators=[
        Optional(),
        AnyOf(('available', 'reserved', 'contracted', 'cancelled'), message='Unknown sale status'),
    ])
    location_description = StringField('Location', validators=[
        Optional(),
        Length(max=500, message='Location must be 500 characters or less'),
    ])
