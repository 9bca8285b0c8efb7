"""Helpers shared by the JSON blueprints."""

from __future__ import annotations

from typing import Any

from flask import jsonify
from flask_wtf import FlaskForm

from kicktrack.errors import ValidationError


def api_response(data: Any = None, message: str = "", status_code: int = 200) -> Any:
    """Wrap a successful result in the standard response envelope."""
    return jsonify({"success": True, "message": message, "data": data}), status_code


def error_response(message: str, status_code: int) -> Any:
    """Wrap an error message in the standard response envelope."""
    return jsonify({"success": False, "message": message, "data": None}), status_code


def validate_form(form: FlaskForm) -> None:
    """Raise ``ValidationError`` with the first field error of an invalid form."""
    if form.validate_on_submit():
        return
    for field, errors in form.errors.items():
        for error in errors:
            label = getattr(form, field).label.text
            raise ValidationError(f"Error in {label}: {error}")
    raise ValidationError("Invalid request.")
